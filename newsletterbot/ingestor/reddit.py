"""Respectful Reddit JSON client with typed error mapping."""

from typing import Any, Dict, List, Optional, Union

import httpx

from newsletterbot.core.errors import (
    AccessForbidden,
    FetchError,
    FetchTimeout,
    InvalidResponseShape,
    NetworkUnreachable,
    NotFound,
    RateLimited,
)
from newsletterbot.core.logging import get_logger
from newsletterbot.core.models import ContentItem, TimeWindow

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://www.reddit.com"
DEFAULT_USER_AGENT = "NewsletterBot/1.0 (topic newsletter aggregator; +https://newsletterbot.app/bot)"


class RedditClient:
    """
    Unauthenticated client for Reddit's public JSON listings.

    Every request carries the identifying User-Agent and a bounded timeout.
    There is no retry here: a failure surfaces immediately as a FetchError
    subclass so the caller can decide whether to move on. Results are not
    cached by the client; see CommunitySource and ThreadFetcher.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "User-Agent": user_agent,
                "Accept": "application/json",
            },
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def fetch_community_items(self, community: str, limit: int = 10) -> List[ContentItem]:
        """Fetch the current hot listing of a community."""
        logger.info(f"Fetching hot posts from r/{community} (limit={limit})")
        payload = await self._get_json(
            f"/r/{community}/hot.json",
            params={"limit": limit},
            context=f"r/{community}",
        )
        posts = self._parse_listing(payload, context=f"r/{community}")
        logger.info(f"Fetched {len(posts)} posts from r/{community}")
        return posts

    async def fetch_community_items_by_window(
        self,
        community: str,
        window: Union[TimeWindow, str] = TimeWindow.WEEK,
        limit: int = 10,
    ) -> List[ContentItem]:
        """Fetch the top listing of a community restricted to a time window."""
        window = TimeWindow(window)
        logger.info(f"Fetching top posts from r/{community} (t={window.value}, limit={limit})")
        payload = await self._get_json(
            f"/r/{community}/top.json",
            params={"t": window.value, "limit": limit},
            context=f"r/{community}",
        )
        posts = self._parse_listing(payload, context=f"r/{community}")
        logger.info(f"Fetched {len(posts)} {window.value} posts from r/{community}")
        return posts

    async def fetch_reply_tree(self, item_id: str) -> Any:
        """
        Fetch the raw comment tree of a post.

        Reddit answers with a two-element array: the post listing and the
        comment listing. The raw structure is returned as-is for flattening.
        """
        payload = await self._get_json(f"/comments/{item_id}.json", context=f"post {item_id}")
        if not isinstance(payload, list) or len(payload) < 2:
            raise InvalidResponseShape(f"Invalid comment tree for post {item_id}")
        return payload

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None, context: str = "") -> Any:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._map_status_error(e.response, context) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {context}: {type(e).__name__}")
            raise FetchTimeout(f"Request timeout for {context}. Please try again.") from e
        except httpx.TransportError as e:
            logger.warning(f"Network error fetching {context}: {e}")
            raise NetworkUnreachable(f"Network error: Could not connect to Reddit ({context}).") from e

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseShape(f"Invalid JSON from Reddit for {context}") from e

    def _map_status_error(self, response: httpx.Response, context: str) -> FetchError:
        status = response.status_code
        logger.error(f"HTTP error {status} for {context}")

        if status == 403:
            return AccessForbidden(
                f"Access forbidden for {context}. The subreddit may be private or restricted.",
                status_code=status,
            )
        if status == 404:
            return NotFound(f"{context} not found.", status_code=status)
        if status == 429:
            return RateLimited(
                "Rate limit exceeded. Please try again later.",
                retry_after=self._parse_retry_after(response.headers.get("Retry-After")),
            )
        return FetchError(f"Failed to fetch {context}: HTTP {status}", status_code=status)

    @staticmethod
    def _parse_retry_after(value: Optional[str]) -> Optional[float]:
        if not value:
            return None
        try:
            wait_time = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid Retry-After header value: {value}")
            return None
        return wait_time if wait_time >= 0 else None

    @staticmethod
    def _parse_listing(payload: Any, context: str) -> List[ContentItem]:
        try:
            children = payload["data"]["children"]
        except (KeyError, TypeError) as e:
            raise InvalidResponseShape(f"Invalid response from Reddit API for {context}") from e

        if not isinstance(children, list):
            raise InvalidResponseShape(f"Invalid response from Reddit API for {context}")

        posts: List[ContentItem] = []
        for child in children:
            data = child.get("data") if isinstance(child, dict) else None
            if not data or "id" not in data:
                continue
            posts.append(ContentItem.from_api(data))
        return posts
