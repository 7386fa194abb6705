"""Data model for fetched content and aggregation results."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from newsletterbot.core.time import isoformat_utc

DELETED_AUTHOR = "[deleted]"
FALLBACK_ID_PREFIX = "fallback_"


class TimeWindow(str, Enum):
    """Recency filter accepted by the content source."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


NEWSLETTER_WINDOWS = (TimeWindow.WEEK, TimeWindow.MONTH)


@dataclass(frozen=True)
class ContentItem:
    """
    A top-level post within a community.

    Instances are immutable: the scorer decorates copies with
    ``relevance_score`` so cached posts stay untouched.
    """
    id: str
    title: str
    author: str
    subreddit: str
    score: int
    num_comments: int
    created_utc: float
    permalink: str
    selftext: str = ""
    url: str = ""
    relevance_score: Optional[float] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ContentItem":
        """Build from the ``data`` object of a Reddit ``t3`` listing child."""
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            selftext=data.get("selftext") or "",
            url=data.get("url") or "",
            author=data.get("author") or DELETED_AUTHOR,
            subreddit=data.get("subreddit") or "",
            score=int(data.get("score") or 0),
            num_comments=int(data.get("num_comments") or 0),
            created_utc=float(data.get("created_utc") or 0),
            permalink=data.get("permalink") or "",
        )

    @property
    def text(self) -> str:
        """Lower-cased title and body, as used for matching."""
        return f"{self.title} {self.selftext}".lower()

    @property
    def is_placeholder(self) -> bool:
        return self.id.startswith(FALLBACK_ID_PREFIX)


@dataclass(frozen=True)
class ReplyItem:
    """A comment on a post or on another comment."""
    id: str
    body: str
    author: str
    score: int
    created_utc: float
    parent_id: str
    permalink: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ReplyItem":
        """Build from the ``data`` object of a Reddit ``t1`` node."""
        return cls(
            id=str(data["id"]),
            body=data.get("body") or "",
            author=data.get("author") or DELETED_AUTHOR,
            score=int(data.get("score") or 0),
            created_utc=float(data.get("created_utc") or 0),
            parent_id=data.get("parent_id") or "",
            permalink=data.get("permalink") or "",
        )


@dataclass(frozen=True)
class TrendingKeyword:
    keyword: str
    frequency: int
    total_score: int
    average_score: int
    sample_posts: Tuple[ContentItem, ...] = ()


@dataclass(frozen=True)
class Contributor:
    username: str
    posts_count: int
    total_score: int
    total_comments: int
    average_score: int
    top_post: ContentItem


@dataclass(frozen=True)
class SummaryStats:
    total_posts: int
    total_upvotes: int
    total_comments: int
    average_score: int
    subreddits_searched: int = 0


@dataclass(frozen=True)
class AggregationResult:
    """Topic newsletter payload produced by one orchestration call."""
    topic: str
    time_filter: TimeWindow
    generated_at: str
    subreddits: Tuple[str, ...]
    summary: SummaryStats
    top_posts: Tuple[ContentItem, ...]
    top_comments: Tuple[ReplyItem, ...]
    insights: Tuple[str, ...]
    related_topics: Tuple[str, ...]
    trending_keywords: Tuple[TrendingKeyword, ...] = ()
    top_contributors: Tuple[Contributor, ...] = ()

    @classmethod
    def build(
        cls,
        topic: str,
        time_filter: TimeWindow,
        subreddits: List[str],
        summary: SummaryStats,
        top_posts: List[ContentItem],
        top_comments: List[ReplyItem],
        insights: List[str],
        related_topics: List[str],
        trending_keywords: Optional[List[TrendingKeyword]] = None,
        top_contributors: Optional[List[Contributor]] = None,
        generated_at: Optional[str] = None,
    ) -> "AggregationResult":
        return cls(
            topic=topic,
            time_filter=TimeWindow(time_filter),
            generated_at=generated_at or isoformat_utc(),
            subreddits=tuple(subreddits),
            summary=summary,
            top_posts=tuple(top_posts),
            top_comments=tuple(top_comments),
            insights=tuple(insights),
            related_topics=tuple(related_topics),
            trending_keywords=tuple(trending_keywords or ()),
            top_contributors=tuple(top_contributors or ()),
        )

    @property
    def used_fallback(self) -> bool:
        return any(post.is_placeholder for post in self.top_posts)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["time_filter"] = self.time_filter.value
        return data


@dataclass(frozen=True)
class DomainAnalysis:
    """Engagement analysis over an explicit list of communities."""
    subreddits: Tuple[str, ...]
    time_filter: TimeWindow
    total_posts: int
    top_posts: Tuple[ContentItem, ...]
    trending_keywords: Tuple[TrendingKeyword, ...]
    top_contributors: Tuple[Contributor, ...]
    engagement: SummaryStats
    insights: Tuple[str, ...] = ()
    generated_at: str = field(default_factory=isoformat_utc)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["time_filter"] = self.time_filter.value
        return data
