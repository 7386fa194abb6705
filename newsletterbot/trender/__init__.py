"""Topic aggregation package.

This package contains modules for:
- Topic routing (topics.py)
- Relevance scoring (score.py)
- Secondary signals and insights (signals.py)
- Aggregation pipeline (pipeline.py)
- Main application (app.py)
"""

from .topics import TopicRoute, TopicRouter

from .score import RelevanceScorer, engagement_score, topic_words

from .signals import (
    Vocabulary,
    extract_related_topics,
    extract_trending_keywords,
    top_contributors,
    summarize
)

from .pipeline import (
    AggregationLimits,
    CommunityOutcome,
    TopicAggregator,
    fallback_content
)

__all__ = [
    # Topics
    'TopicRoute',
    'TopicRouter',

    # Scoring
    'RelevanceScorer',
    'engagement_score',
    'topic_words',

    # Signals
    'Vocabulary',
    'extract_related_topics',
    'extract_trending_keywords',
    'top_contributors',
    'summarize',

    # Pipeline
    'AggregationLimits',
    'CommunityOutcome',
    'TopicAggregator',
    'fallback_content'
]
