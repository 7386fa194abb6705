"""Relevance scoring for posts against a topic.

final = relevance * RELEVANCE_WEIGHT + engagement

- relevance: per topic word, occurrences in the title (x TITLE_WEIGHT)
  plus occurrences in title + body (x BODY_WEIGHT)
- engagement: ln(score + 1) + ln(num_comments + 1), so popularity is
  dampened and off-topic high-karma posts cannot dominate
"""

import math
from dataclasses import replace
from typing import Iterable, List

from newsletterbot.core.models import ContentItem

# Scoring configuration
TITLE_WEIGHT = 3
BODY_WEIGHT = 1
RELEVANCE_WEIGHT = 2
MIN_TOPIC_WORD_LENGTH = 3


def topic_words(topic: str) -> List[str]:
    """Lower-cased topic words longer than two characters."""
    return [word for word in (topic or '').lower().split() if len(word) >= MIN_TOPIC_WORD_LENGTH]


def engagement_score(item: ContentItem) -> float:
    # Reddit scores can be negative; clamp so the log stays defined
    return math.log(max(item.score, 0) + 1) + math.log(max(item.num_comments, 0) + 1)


class RelevanceScorer:
    """Filters and ranks posts for a topic."""

    def __init__(
        self,
        title_weight: float = TITLE_WEIGHT,
        body_weight: float = BODY_WEIGHT,
        relevance_weight: float = RELEVANCE_WEIGHT,
    ):
        self.title_weight = title_weight
        self.body_weight = body_weight
        self.relevance_weight = relevance_weight

    def is_relevant(self, item: ContentItem, topic: str) -> bool:
        """True if any topic word, or the whole topic, occurs in title or body."""
        topic_lower = (topic or '').lower().strip()
        content = item.text
        if topic_lower and topic_lower in content:
            return True
        return any(word in content for word in topic_words(topic))

    def relevance(self, item: ContentItem, topic: str) -> float:
        title = item.title.lower()
        content = item.text
        total = 0.0
        for word in topic_words(topic):
            total += title.count(word) * self.title_weight
            total += content.count(word) * self.body_weight
        return total

    def score(self, item: ContentItem, topic: str) -> float:
        final = self.relevance(item, topic) * self.relevance_weight + engagement_score(item)
        return round(final, 2)

    def filter_relevant(self, items: Iterable[ContentItem], topic: str) -> List[ContentItem]:
        return [item for item in items if self.is_relevant(item, topic)]

    def rank(self, items: Iterable[ContentItem], topic: str) -> List[ContentItem]:
        """
        Return decorated copies sorted by descending score.

        The sort is stable, so ties keep their fetch order. Inputs are not
        modified.
        """
        scored = [replace(item, relevance_score=self.score(item, topic)) for item in items]
        return sorted(scored, key=lambda item: item.relevance_score, reverse=True)
