"""Topic routing: maps a free-text topic to the subreddits worth searching.

The routing table is data (``config/topics.yaml``): an ordered list of
keyword → communities entries plus one fallback list for topics that match
nothing.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml

from newsletterbot.core.logging import get_logger

logger = get_logger(__name__)

# Configuration
DEFAULT_MAX_COMMUNITIES = 4
DEFAULT_FALLBACK_COMMUNITIES = ("technology", "programming")


@dataclass(frozen=True)
class TopicRoute:
    """One row of the routing table."""
    keyword: str
    communities: Tuple[str, ...]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TopicRoute':
        """Create from dictionary."""
        keyword = str(data.get('keyword', '')).strip().lower()
        if not keyword:
            raise ValueError("Topic route requires a non-empty 'keyword'")
        communities = tuple(str(c).strip() for c in data.get('communities', []) if str(c).strip())
        if not communities:
            raise ValueError(f"Topic route '{keyword}' has no communities")
        return cls(keyword=keyword, communities=communities)

    def matches(self, topic: str) -> bool:
        """Bidirectional substring match against a lower-cased topic."""
        return topic in self.keyword or self.keyword in topic


class TopicRouter:
    """
    Resolves topics to an ordered, bounded list of communities.

    Matching lower-cases the topic and walks the table in order; the first
    route whose keyword contains the topic, or is contained in it, wins.
    Anything unmatched, including an empty topic, gets the fallback list.
    The router never raises for a string topic.
    """

    def __init__(
        self,
        routes: Sequence[TopicRoute],
        fallback: Sequence[str] = DEFAULT_FALLBACK_COMMUNITIES,
        max_communities: int = DEFAULT_MAX_COMMUNITIES,
    ):
        if max_communities < 1:
            raise ValueError("max_communities must be at least 1")
        self.routes: Tuple[TopicRoute, ...] = tuple(routes)
        self.fallback: Tuple[str, ...] = tuple(fallback) or DEFAULT_FALLBACK_COMMUNITIES
        self.max_communities = max_communities

    def match(self, topic: str) -> Optional[TopicRoute]:
        """Return the first matching route, or None."""
        normalized = (topic or '').strip().lower()
        if not normalized:
            return None
        for route in self.routes:
            if route.matches(normalized):
                return route
        return None

    def communities_for(self, topic: str) -> List[str]:
        route = self.match(topic)
        if route is None:
            logger.debug(f"No route for topic '{topic}', using fallback communities")
            return list(self.fallback[:self.max_communities])
        return list(route.communities[:self.max_communities])

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any], max_communities: Optional[int] = None) -> 'TopicRouter':
        """Build a router from a parsed routing config."""
        routes = []
        for route_data in config_dict.get('topics', []) or []:
            try:
                routes.append(TopicRoute.from_dict(route_data))
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping invalid topic route {route_data!r}: {e}")

        return cls(
            routes=routes,
            fallback=config_dict.get('fallback') or DEFAULT_FALLBACK_COMMUNITIES,
            max_communities=max_communities or config_dict.get('max_communities', DEFAULT_MAX_COMMUNITIES),
        )

    @classmethod
    def load_from_yaml(cls, yaml_path: Union[str, Path], max_communities: Optional[int] = None) -> 'TopicRouter':
        """Load the routing table; on any error the router only knows the fallback."""
        try:
            with open(yaml_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            router = cls.from_dict(data, max_communities=max_communities)
            logger.info(f"Loaded {len(router.routes)} topic routes from {yaml_path}")
            return router

        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading topic routes from {yaml_path}: {e}")
            return cls(routes=[], max_communities=max_communities or DEFAULT_MAX_COMMUNITIES)
