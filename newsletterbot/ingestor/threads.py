"""Comment thread fetching and flattening."""
from typing import Any, Iterable, List

from newsletterbot.core.cache import ResponseCache
from newsletterbot.core.logging import get_logger
from newsletterbot.core.models import ReplyItem
from newsletterbot.ingestor.reddit import RedditClient
from newsletterbot.ingestor.source import replies_key

logger = get_logger(__name__)

COMMENT_KIND = "t1"
REMOVED_BODIES = {"[deleted]", "[removed]"}


def _children(listing: Any) -> Iterable[Any]:
    if not isinstance(listing, dict):
        return []
    data = listing.get("data")
    if not isinstance(data, dict):
        return []
    children = data.get("children")
    return children if isinstance(children, list) else []


def flatten_reply_tree(raw: Any) -> List[ReplyItem]:
    """
    Flatten a Reddit comment tree into a list of replies, depth first.

    Only ``t1`` nodes become replies; ``more`` stubs and other metadata are
    skipped, as are deleted placeholders with no body. Replies to replies
    keep their own score, author and timestamp.
    """
    if not isinstance(raw, list) or len(raw) < 2:
        return []

    replies: List[ReplyItem] = []
    stack = list(reversed(list(_children(raw[1]))))
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        data = node.get("data")
        if not isinstance(data, dict):
            continue

        if node.get("kind") == COMMENT_KIND and "id" in data:
            body = data.get("body") or ""
            if body and body not in REMOVED_BODIES:
                replies.append(ReplyItem.from_api(data))

        # replies is "" when a comment has none
        stack.extend(reversed(list(_children(data.get("replies")))))

    return replies


class ThreadFetcher:
    """Fetches and memoizes the flattened reply list of a post."""

    def __init__(self, client: RedditClient, cache: ResponseCache):
        self.client = client
        self.cache = cache

    async def replies_for(self, item_id: str) -> List[ReplyItem]:
        key = replies_key(item_id)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        raw = await self.client.fetch_reply_tree(item_id)
        replies = flatten_reply_tree(raw)
        self.cache.set(key, tuple(replies))
        logger.debug(f"Flattened {len(replies)} comments for post {item_id}")
        return replies
