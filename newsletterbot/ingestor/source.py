"""Cached access to community listings."""
from typing import List, Union

from newsletterbot.core.cache import ResponseCache
from newsletterbot.core.logging import get_logger
from newsletterbot.core.models import ContentItem, TimeWindow
from newsletterbot.ingestor.reddit import RedditClient

logger = get_logger(__name__)


def posts_key(community: str, limit: int) -> str:
    return f"reddit:{community.lower()}:hot:{limit}"


def window_key(community: str, window: Union[TimeWindow, str], limit: int) -> str:
    return f"reddit:{community.lower()}:top:{TimeWindow(window).value}:{limit}"


def replies_key(item_id: str) -> str:
    return f"reddit:comments:{item_id}"


class CommunitySource:
    """Memoizes RedditClient listings in the shared ResponseCache."""

    def __init__(self, client: RedditClient, cache: ResponseCache):
        self.client = client
        self.cache = cache

    async def items(self, community: str, limit: int = 10) -> List[ContentItem]:
        key = posts_key(community, limit)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for r/{community}")
            return list(cached)

        posts = await self.client.fetch_community_items(community, limit)
        self.cache.set(key, tuple(posts))
        return posts

    async def items_by_window(
        self,
        community: str,
        window: Union[TimeWindow, str] = TimeWindow.WEEK,
        limit: int = 10,
    ) -> List[ContentItem]:
        key = window_key(community, window, limit)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for r/{community} ({TimeWindow(window).value})")
            return list(cached)

        posts = await self.client.fetch_community_items_by_window(community, window, limit)
        self.cache.set(key, tuple(posts))
        return posts
