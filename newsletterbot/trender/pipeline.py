"""Aggregation orchestrator for topic newsletters.

Coordinates one topic request end to end:
1. Routing: resolve the topic to a bounded list of subreddits
2. Collection: fetch windowed posts per subreddit, keep relevant ones and
   pull comment threads for the first few, pacing every outbound call
3. Fallback: substitute placeholder content when nothing was collected
4. Ranking: score posts for relevance + engagement, pick top comments
5. Signals: summary stats, related topics, trending keywords, contributors
   and insights
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar, Union

from newsletterbot.core.errors import FetchError, NoContentError
from newsletterbot.core.logging import get_logger
from newsletterbot.core.models import (
    FALLBACK_ID_PREFIX,
    NEWSLETTER_WINDOWS,
    AggregationResult,
    ContentItem,
    DomainAnalysis,
    ReplyItem,
    TimeWindow,
)
from newsletterbot.ingestor.source import CommunitySource
from newsletterbot.ingestor.threads import ThreadFetcher
from newsletterbot.trender.score import RelevanceScorer
from newsletterbot.trender.signals import (
    Vocabulary,
    domain_insights,
    engagement_stats,
    extract_related_topics,
    extract_trending_keywords,
    summarize,
    top_comments,
    top_contributors,
    topic_insights,
)
from newsletterbot.trender.topics import TopicRouter

# Pipeline configuration
POSTS_PER_COMMUNITY = 10
ANALYSIS_POSTS_PER_COMMUNITY = 15
REPLY_THREADS_PER_COMMUNITY = 5
COMMUNITY_DELAY_SECONDS = 1.0
ITEM_DELAY_SECONDS = 0.5
TOP_POSTS_LIMIT = 15
TOP_COMMENTS_LIMIT = 10
MIN_COMMENT_SCORE = 5
RELATED_TOPICS_LIMIT = 5
DOMAIN_TOP_POSTS_LIMIT = 20
TRENDING_MAX_COMMUNITIES = 4

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class AggregationLimits:
    """Tunable sizes and pacing delays for one aggregator."""
    posts_per_community: int = POSTS_PER_COMMUNITY
    analysis_posts_per_community: int = ANALYSIS_POSTS_PER_COMMUNITY
    reply_threads_per_community: int = REPLY_THREADS_PER_COMMUNITY
    community_delay_seconds: float = COMMUNITY_DELAY_SECONDS
    item_delay_seconds: float = ITEM_DELAY_SECONDS
    top_posts_limit: int = TOP_POSTS_LIMIT
    top_comments_limit: int = TOP_COMMENTS_LIMIT
    min_comment_score: int = MIN_COMMENT_SCORE
    related_topics_limit: int = RELATED_TOPICS_LIMIT

    @classmethod
    def from_settings(cls, settings) -> 'AggregationLimits':
        return cls(
            posts_per_community=settings.posts_per_community,
            analysis_posts_per_community=settings.analysis_posts_per_community,
            reply_threads_per_community=settings.reply_threads_per_community,
            community_delay_seconds=settings.community_delay_seconds,
            item_delay_seconds=settings.item_delay_seconds,
            top_posts_limit=settings.top_posts_limit,
            top_comments_limit=settings.top_comments_limit,
            min_comment_score=settings.min_comment_score,
            related_topics_limit=settings.related_topics_limit,
        )


@dataclass
class CommunityOutcome:
    """What one subreddit contributed: posts and comments, or the error that stopped it."""
    community: str
    items: List[ContentItem] = field(default_factory=list)
    replies: List[ReplyItem] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fallback_content(topic: str, now: Optional[float] = None) -> tuple:
    """Placeholder posts and comments used when every subreddit came back empty."""
    created = now if now is not None else time.time()
    post_one = f"{FALLBACK_ID_PREFIX}1"
    posts = [
        ContentItem(
            id=post_one,
            title=f"Latest {topic} Trends and Discussions",
            selftext=(
                f"Discover the most recent developments in {topic}. The community has been actively "
                f"discussing new technologies, best practices, and emerging trends."
            ),
            url="https://reddit.com/r/technology",
            author="community",
            subreddit="technology",
            score=150,
            num_comments=25,
            created_utc=created,
            permalink=f"/r/technology/comments/{post_one}/",
        ),
        ContentItem(
            id=f"{FALLBACK_ID_PREFIX}2",
            title=f"{topic} Best Practices and Tips",
            selftext=(
                f"Learn from the community's shared experiences in {topic}. This post covers essential "
                f"tips, common pitfalls, and recommended approaches."
            ),
            url="https://reddit.com/r/programming",
            author="community",
            subreddit="programming",
            score=120,
            num_comments=18,
            created_utc=created,
            permalink=f"/r/programming/comments/{FALLBACK_ID_PREFIX}2/",
        ),
    ]
    comments = [
        ReplyItem(
            id=f"{FALLBACK_ID_PREFIX}comment1",
            body=f"Great insights on {topic}! The community is really active in this area.",
            author="community_member",
            score=15,
            created_utc=created,
            parent_id=f"t3_{post_one}",
            permalink=f"/r/technology/comments/{post_one}/{FALLBACK_ID_PREFIX}comment1/",
        ),
        ReplyItem(
            id=f"{FALLBACK_ID_PREFIX}comment2",
            body=f"This is exactly what I needed for my {topic} project. Thanks for sharing!",
            author="community_member",
            score=12,
            created_utc=created,
            parent_id=f"t3_{post_one}",
            permalink=f"/r/technology/comments/{post_one}/{FALLBACK_ID_PREFIX}comment2/",
        ),
    ]
    return posts, comments


def _dedupe(items: Iterable[T]) -> List[T]:
    seen = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


class TopicAggregator:
    """
    Builds topic newsletters and community analyses from Reddit.

    All outbound calls run sequentially inside the calling task with fixed
    pauses between them; no fan-out happens across subreddits or threads.
    Failures of one subreddit or one thread are logged and skipped.
    """

    def __init__(
        self,
        router: TopicRouter,
        source: CommunitySource,
        threads: ThreadFetcher,
        scorer: Optional[RelevanceScorer] = None,
        vocabulary: Optional[Vocabulary] = None,
        limits: Optional[AggregationLimits] = None,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.router = router
        self.source = source
        self.threads = threads
        self.scorer = scorer or RelevanceScorer()
        self.vocabulary = vocabulary or Vocabulary()
        self.limits = limits or AggregationLimits()
        self._sleep = sleep
        self.logger = logger or get_logger(__name__)

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    async def build_topic_result(
        self,
        topic: str,
        window: Union[TimeWindow, str] = TimeWindow.WEEK,
    ) -> AggregationResult:
        """
        Aggregate, rank and summarize Reddit content for a topic.

        Args:
            topic: Free-text topic, e.g. "Agentic AI"
            window: week or month

        Returns:
            A complete AggregationResult; never fails because upstream was
            empty or individual subreddits errored.

        Raises:
            ValueError: If the topic is not a string or the window is not
                week/month
        """
        if not isinstance(topic, str):
            raise ValueError("topic must be a string")
        window = TimeWindow(window)
        if window not in NEWSLETTER_WINDOWS:
            raise ValueError(f"Unsupported time window for newsletters: {window.value}")

        start_time = time.time()
        communities = self.router.communities_for(topic)
        self.logger.info(
            f"Starting topic aggregation for '{topic}'",
            extra={"topic": topic, "time_filter": window.value, "subreddits": communities},
        )

        outcomes: List[CommunityOutcome] = []
        for index, community in enumerate(communities):
            if index:
                await self._pause(self.limits.community_delay_seconds)
            outcomes.append(await self._collect_community(community, topic, window))

        posts = _dedupe(post for outcome in outcomes for post in outcome.items)
        comments = _dedupe(reply for outcome in outcomes for reply in outcome.replies)
        failed = [outcome.community for outcome in outcomes if not outcome.ok]

        if not posts:
            self.logger.warning(
                f"No posts found for '{topic}', using placeholder content",
                extra={"topic": topic, "failed_subreddits": failed},
            )
            posts, comments = fallback_content(topic)

        result = self._assemble_topic_result(topic, window, communities, posts, comments)

        self.logger.info(
            f"Topic aggregation for '{topic}' completed in {time.time() - start_time:.2f}s: "
            f"{result.summary.total_posts} posts, {result.summary.total_comments} comments",
            extra={"topic": topic, "failed_subreddits": failed, "used_fallback": result.used_fallback},
        )
        return result

    async def _collect_community(self, community: str, topic: str, window: TimeWindow) -> CommunityOutcome:
        outcome = CommunityOutcome(community=community)
        try:
            self.logger.info(f"Searching r/{community} for '{topic}'")
            posts = await self.source.items_by_window(community, window, self.limits.posts_per_community)
            outcome.items = self.scorer.filter_relevant(posts, topic)
        except FetchError as e:
            self.logger.warning(
                f"Failed to search r/{community}: {e}",
                extra={"subreddit": community, "error_type": type(e).__name__},
            )
            outcome.error = e
            return outcome
        except Exception as e:
            self.logger.exception(f"Unexpected error searching r/{community}: {e}")
            outcome.error = e
            return outcome

        for index, post in enumerate(outcome.items[:self.limits.reply_threads_per_community]):
            if index:
                await self._pause(self.limits.item_delay_seconds)
            try:
                outcome.replies.extend(await self.threads.replies_for(post.id))
            except FetchError as e:
                self.logger.warning(
                    f"Failed to fetch comments for post {post.id}: {e}",
                    extra={"subreddit": community, "post_id": post.id, "error_type": type(e).__name__},
                )
            except Exception as e:
                self.logger.exception(f"Unexpected error fetching comments for post {post.id}: {e}")

        return outcome

    def _assemble_topic_result(
        self,
        topic: str,
        window: TimeWindow,
        communities: Sequence[str],
        posts: List[ContentItem],
        comments: List[ReplyItem],
    ) -> AggregationResult:
        ranked = self.scorer.rank(posts, topic)
        best_posts = ranked[:self.limits.top_posts_limit]
        best_comments = top_comments(comments, self.limits.min_comment_score, self.limits.top_comments_limit)

        summary = summarize(posts, len(comments), subreddits_searched=len(communities))
        related = extract_related_topics(
            posts, topic, self.vocabulary.stopwords, limit=self.limits.related_topics_limit
        )

        return AggregationResult.build(
            topic=topic,
            time_filter=window,
            subreddits=list(communities),
            summary=summary,
            top_posts=best_posts,
            top_comments=best_comments,
            insights=topic_insights(topic, summary, best_posts, related),
            related_topics=related,
            trending_keywords=extract_trending_keywords(posts, self.vocabulary.trending_keywords),
            top_contributors=top_contributors(posts),
        )

    async def fetch_trending_posts(self, communities: Sequence[str], total_posts: int = 20) -> List[ContentItem]:
        """Hot posts across a few subreddits, highest score first."""
        selected = list(communities)[:TRENDING_MAX_COMMUNITIES]
        if not selected or total_posts <= 0:
            return []

        per_community = math.ceil(total_posts / len(communities))
        posts: List[ContentItem] = []
        for index, community in enumerate(selected):
            if index:
                await self._pause(self.limits.item_delay_seconds)
            try:
                posts.extend(await self.source.items(community, per_community))
            except FetchError as e:
                self.logger.warning(f"Failed to fetch from r/{community}: {e}", extra={"subreddit": community})

        ranked = sorted(_dedupe(posts), key=lambda post: post.score, reverse=True)
        return ranked[:total_posts]

    async def build_domain_analysis(
        self,
        communities: Sequence[str],
        window: Union[TimeWindow, str] = TimeWindow.WEEK,
    ) -> DomainAnalysis:
        """
        Engagement analysis over an explicit list of subreddits.

        Raises:
            NoContentError: If no subreddit returned any post
        """
        window = TimeWindow(window)
        self.logger.info(f"Starting domain analysis for: {', '.join(communities)}")

        posts: List[ContentItem] = []
        for index, community in enumerate(communities):
            if index:
                await self._pause(self.limits.community_delay_seconds)
            try:
                posts.extend(await self.source.items_by_window(
                    community, window, self.limits.analysis_posts_per_community
                ))
            except FetchError as e:
                self.logger.warning(f"Failed to fetch from r/{community}: {e}", extra={"subreddit": community})

        posts = _dedupe(posts)
        if not posts:
            raise NoContentError("No posts found from the selected subreddits")

        engagement = engagement_stats(posts, subreddits_searched=len(communities))
        trending = extract_trending_keywords(posts, self.vocabulary.trending_keywords)
        contributors = top_contributors(posts)

        self.logger.info(f"Domain analysis complete: {len(posts)} posts analyzed")
        return DomainAnalysis(
            subreddits=tuple(communities),
            time_filter=window,
            total_posts=len(posts),
            top_posts=tuple(sorted(posts, key=lambda post: post.score, reverse=True)[:DOMAIN_TOP_POSTS_LIMIT]),
            trending_keywords=tuple(trending),
            top_contributors=tuple(contributors),
            engagement=engagement,
            insights=tuple(domain_insights(engagement, trending, contributors, window)),
        )
