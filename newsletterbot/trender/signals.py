"""Secondary signals derived from collected posts and comments.

Trending keywords, top contributors, related topics, summary statistics and
the human-readable insight lines shown in the newsletter header.
"""

from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Sequence, Tuple, Union

import yaml

from newsletterbot.core.logging import get_logger
from newsletterbot.core.models import (
    DELETED_AUTHOR,
    Contributor,
    ContentItem,
    ReplyItem,
    SummaryStats,
    TimeWindow,
    TrendingKeyword,
)
from newsletterbot.core.utils import clamp_length, extract_words
from newsletterbot.trender.score import topic_words

logger = get_logger(__name__)

# Insight thresholds
HIGH_ENGAGEMENT_AVG_SCORE = 100
ACTIVE_TOPIC_DISCUSSION_COMMENTS = 500
ACTIVE_COMMUNITY_COMMENTS = 1000
ENGAGED_COMMENTS_PER_POST = 20
TOP_POST_TITLE_CHARS = 60

TRENDING_KEYWORDS_LIMIT = 10
TRENDING_SAMPLE_POSTS = 3
TOP_CONTRIBUTORS_LIMIT = 5


@dataclass(frozen=True)
class Vocabulary:
    """Keyword list for trending analysis and stopwords for related topics."""
    trending_keywords: Tuple[str, ...] = ()
    stopwords: FrozenSet[str] = frozenset()

    @classmethod
    def from_dict(cls, data: Dict) -> 'Vocabulary':
        return cls(
            trending_keywords=tuple(str(k) for k in data.get('trending_keywords', []) or []),
            stopwords=frozenset(str(w).lower() for w in data.get('stopwords', []) or []),
        )

    @classmethod
    def load_from_yaml(cls, yaml_path: Union[str, Path]) -> 'Vocabulary':
        try:
            with open(yaml_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            return cls.from_dict(data)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading vocabulary from {yaml_path}: {e}")
            return cls()


def _average(total: int, count: int) -> int:
    return round(total / count) if count else 0


def summarize(posts: Sequence[ContentItem], comments_count: int, subreddits_searched: int = 0) -> SummaryStats:
    """Totals over the full collected set of posts."""
    total_upvotes = sum(post.score for post in posts)
    return SummaryStats(
        total_posts=len(posts),
        total_upvotes=total_upvotes,
        total_comments=comments_count,
        average_score=_average(total_upvotes, len(posts)),
        subreddits_searched=subreddits_searched,
    )


def engagement_stats(posts: Sequence[ContentItem], subreddits_searched: int = 0) -> SummaryStats:
    """Like summarize(), but counts comments from each post's num_comments."""
    return summarize(posts, sum(post.num_comments for post in posts), subreddits_searched)


def top_comments(comments: Iterable[ReplyItem], min_score: int = 5, limit: int = 10) -> List[ReplyItem]:
    """Comments scoring strictly above min_score, best first."""
    qualifying = [comment for comment in comments if comment.score > min_score]
    return sorted(qualifying, key=lambda comment: comment.score, reverse=True)[:limit]


def extract_trending_keywords(
    posts: Sequence[ContentItem],
    keywords: Sequence[str],
    limit: int = TRENDING_KEYWORDS_LIMIT,
) -> List[TrendingKeyword]:
    """Count vocabulary keywords in post titles; most frequent first."""
    found: Dict[str, List[ContentItem]] = {}
    for post in posts:
        title = post.title.lower()
        for keyword in keywords:
            if keyword.lower() in title:
                found.setdefault(keyword, []).append(post)

    trending = []
    for keyword, matches in found.items():
        total_score = sum(post.score for post in matches)
        trending.append(TrendingKeyword(
            keyword=keyword,
            frequency=len(matches),
            total_score=total_score,
            average_score=_average(total_score, len(matches)),
            sample_posts=tuple(matches[:TRENDING_SAMPLE_POSTS]),
        ))

    trending.sort(key=lambda t: t.frequency, reverse=True)
    return trending[:limit]


def top_contributors(posts: Sequence[ContentItem], limit: int = TOP_CONTRIBUTORS_LIMIT) -> List[Contributor]:
    """Group posts by author, excluding deleted accounts; highest total score first."""
    by_author: Dict[str, List[ContentItem]] = {}
    for post in posts:
        if not post.author or post.author == DELETED_AUTHOR:
            continue
        by_author.setdefault(post.author, []).append(post)

    contributors = []
    for author, authored in by_author.items():
        total_score = sum(post.score for post in authored)
        contributors.append(Contributor(
            username=author,
            posts_count=len(authored),
            total_score=total_score,
            total_comments=sum(post.num_comments for post in authored),
            average_score=_average(total_score, len(authored)),
            top_post=max(authored, key=lambda post: post.score),
        ))

    contributors.sort(key=lambda c: c.total_score, reverse=True)
    return contributors[:limit]


def extract_related_topics(
    posts: Sequence[ContentItem],
    topic: str,
    stopwords: Iterable[str] = (),
    limit: int = 5,
) -> List[str]:
    """
    Most frequent words (4+ characters) across post text.

    The topic itself, each of its words and every stopword are excluded.
    Ties keep first-seen order.
    """
    topic_lower = (topic or '').strip().lower()
    excluded = set(stopwords) | set(topic_words(topic)) | set(extract_words(topic_lower)) | {topic_lower}

    counts: Counter = Counter()
    for post in posts:
        for word in extract_words(post.text):
            if word not in excluded:
                counts[word] += 1

    return [word for word, _ in counts.most_common(limit)]


def topic_insights(
    topic: str,
    summary: SummaryStats,
    top_posts: Sequence[ContentItem],
    related_topics: Sequence[str],
) -> List[str]:
    insights: List[str] = []

    if summary.average_score > HIGH_ENGAGEMENT_AVG_SCORE:
        insights.append(
            f'🔥 High engagement on "{topic}" content! Average post score: {summary.average_score} upvotes'
        )

    if summary.total_comments > ACTIVE_TOPIC_DISCUSSION_COMMENTS:
        insights.append(
            f"💬 Active discussion with {summary.total_comments} comments "
            f"across {summary.subreddits_searched} communities"
        )

    if top_posts:
        top_post = top_posts[0]
        title = clamp_length(top_post.title, TOP_POST_TITLE_CHARS)
        insights.append(f'📈 Top post: "{title}" with {top_post.score} upvotes')

    if related_topics:
        insights.append(f"🔗 Related topics: {', '.join(related_topics[:3])}")

    insights.append(
        f"📊 Analyzed {summary.total_posts} posts from {summary.subreddits_searched} subreddits"
    )
    return insights


def domain_insights(
    engagement: SummaryStats,
    trending: Sequence[TrendingKeyword],
    contributors: Sequence[Contributor],
    window: TimeWindow,
) -> List[str]:
    insights: List[str] = []

    if engagement.average_score > HIGH_ENGAGEMENT_AVG_SCORE:
        insights.append(f"🔥 High engagement detected! Average post score: {engagement.average_score} upvotes")

    if engagement.total_comments > ACTIVE_COMMUNITY_COMMENTS:
        insights.append(f"💬 Active community with {engagement.total_comments} total comments")

    if trending:
        top_keyword = trending[0]
        insights.append(
            f'📈 Trending topic: "{top_keyword.keyword}" appeared {top_keyword.frequency} times '
            f"with {top_keyword.total_score} total upvotes"
        )

    if contributors:
        top = contributors[0]
        insights.append(
            f"👑 Top contributor: u/{top.username} with {top.total_score} total upvotes "
            f"across {top.posts_count} posts"
        )

    comments_per_post = _average(engagement.total_comments, engagement.total_posts)
    if comments_per_post > ENGAGED_COMMENTS_PER_POST:
        insights.append(f"💭 Highly engaged community averaging {comments_per_post} comments per post")

    if TimeWindow(window) == TimeWindow.WEEK:
        insights.append(f"📅 Weekly roundup: {engagement.total_posts} posts analyzed from the past week")
    else:
        insights.append(f"📅 Monthly roundup: {engagement.total_posts} posts analyzed from the past month")

    return insights
