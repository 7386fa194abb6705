"""
Narrative provider interface and implementations for newsletter writing.

Provides abstraction over LLM backends with an offline fallback.
The dummy provider is deterministic and needs no API key, so it is the
default for development and tests.
"""

import json
import re
import time
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence, Type

import httpx
from pydantic import ValidationError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from newsletterbot.core.errors import NarrativeError
from newsletterbot.core.logging import get_logger
from newsletterbot.core.models import ContentItem, ReplyItem, TimeWindow
from newsletterbot.core.rate_limiter import MonthlyRateLimiter
from newsletterbot.core.time import isoformat_utc
from newsletterbot.core.utils import clamp_length
from .models import Newsletter, NewsletterFormat, NewsletterSection, SectionType, Tone

logger = get_logger(__name__)

# Content preparation limits
MAX_PROMPT_POSTS = 12
MAX_PROMPT_COMMENTS = 20
POST_BODY_CHARS = 400
COMMENT_BODY_CHARS = 300
RELEVANCE_WEIGHT = 0.7
ENGAGEMENT_WEIGHT = 0.3

SYSTEM_PROMPT = (
    "You are an expert newsletter writer who creates engaging, insightful newsletters about "
    "technology and business topics. You have a deep understanding of Reddit communities and can "
    "extract valuable insights from discussions. Write in a professional yet engaging tone that "
    "makes complex topics accessible."
)

FORMAT_INSTRUCTIONS = {
    NewsletterFormat.BRIEF: (
        "BRIEF FORMAT INSTRUCTIONS:\n"
        "- Keep content concise and focused on key points\n"
        "- Write shorter sections (2-3 paragraphs max)\n"
        "- Focus on executive summary style\n"
        "- Prioritize the most important insights only"
    ),
    NewsletterFormat.DETAILED: (
        "DETAILED FORMAT INSTRUCTIONS:\n"
        "- Provide comprehensive analysis and insights\n"
        "- Include multiple perspectives and deep analysis\n"
        "- Use detailed examples and explanations\n"
        "- Cover all major trends and discussions"
    ),
    NewsletterFormat.VISUAL: (
        "VISUAL FORMAT INSTRUCTIONS:\n"
        "- Structure content for easy visual scanning\n"
        "- Use clear section headers and lists\n"
        "- Focus on scannable content structure"
    ),
}


def _prompt_priority(post: ContentItem) -> float:
    relevance = post.relevance_score or 0
    return relevance * RELEVANCE_WEIGHT + (post.score + post.num_comments) * ENGAGEMENT_WEIGHT


def _one_line(text: str) -> str:
    return re.sub(r'\n+', ' ', text or '').strip()


def top_subreddits(posts: Sequence[ContentItem], limit: int = 3) -> str:
    counts = Counter(post.subreddit for post in posts)
    return ", ".join(f"r/{name} ({count})" for name, count in counts.most_common(limit))


def prepare_content(posts: Sequence[ContentItem], comments: Sequence[ReplyItem]) -> str:
    """
    Plain-text digest of the best posts and comments for a narrative prompt.

    Posts are re-ordered by 0.7 x relevance + 0.3 x (score + comments) and
    capped at 12; comments are ordered by score and capped at 20. Inputs are
    not modified.
    """
    best_posts = sorted(posts, key=_prompt_priority, reverse=True)[:MAX_PROMPT_POSTS]
    best_comments = sorted(comments, key=lambda c: c.score, reverse=True)[:MAX_PROMPT_COMMENTS]

    lines: List[str] = ["=== TOP REDDIT POSTS ===", ""]
    for index, post in enumerate(best_posts, start=1):
        lines.append(f'{index}. "{post.title}"')
        lines.append(
            f"   r/{post.subreddit} | score {post.score} | {post.num_comments} comments | "
            f"{post.score + post.num_comments} total engagement"
        )
        lines.append(f"   u/{post.author}")
        body = _one_line(post.selftext)
        if body:
            lines.append(f"   {clamp_length(body, POST_BODY_CHARS)}")
        lines.append(f"   ORIGINAL POST: https://reddit.com{post.permalink}")
        lines.append("")

    lines.extend(["=== TOP COMMENTS ===", ""])
    for index, comment in enumerate(best_comments, start=1):
        lines.append(f"{index}. u/{comment.author} (score {comment.score})")
        lines.append(f"   {clamp_length(_one_line(comment.body), COMMENT_BODY_CHARS)}")
        lines.append(f"   COMMENT: https://reddit.com{comment.permalink}")
        lines.append("")

    avg_post = round(sum(p.score for p in posts) / len(posts)) if posts else 0
    avg_comment = round(sum(c.score for c in comments) / len(comments)) if comments else 0
    lines.append("=== SUMMARY STATISTICS ===")
    lines.append(f"Total Posts: {len(posts)} | Total Comments: {len(comments)}")
    lines.append(f"Avg Post Score: {avg_post} | Avg Comment Score: {avg_comment}")
    lines.append(f"Top Subreddits: {top_subreddits(posts)}")
    return "\n".join(lines) + "\n"


def build_prompt(topic: str, content: str, window: TimeWindow, fmt: NewsletterFormat) -> str:
    """User prompt asking for a JSON newsletter."""
    return (
        f'Create a compelling, data-driven newsletter about "{topic}" based on the Reddit community '
        f"discussions from the past {TimeWindow(window).value}.\n\n"
        f"FORMAT: {fmt.value.upper()}\n{FORMAT_INSTRUCTIONS[fmt]}\n\n"
        "INSTRUCTIONS:\n"
        "- Identify trends, insights and key discussions\n"
        "- Use specific examples from the posts and comments\n"
        "- Link to original posts with markdown [text](url) using the provided permalinks\n\n"
        f"CONTENT TO ANALYZE:\n{content}\n"
        "Return ONLY valid JSON with this structure:\n"
        '{"title": "...", "introduction": "...", '
        '"sections": [{"title": "...", "content": "...", "type": "trends|insights|analysis|summary|discussions"}], '
        '"key_takeaways": ["..."], "conclusion": "...", "tone": "professional|casual|enthusiastic"}'
    )


def _extract_title(text: str, topic: str) -> str:
    first_line = text.split('\n', 1)[0].strip()
    if 10 < len(first_line) < 100 and '.' not in first_line and ':' not in first_line:
        return first_line
    return f"{topic} Weekly Digest"


def fallback_newsletter(text: str, topic: str) -> Newsletter:
    """Best-effort newsletter from free text when the model did not return JSON."""
    cleaned = re.sub(r'\n{3,}', '\n\n', text or '').strip()
    paragraphs = [p.strip() for p in cleaned.split('\n\n') if len(p.strip()) > 20]
    middle = paragraphs[1:-1]

    if len(middle) >= 2:
        headings = [
            ("Trending Discussions", SectionType.TRENDS),
            ("Key Insights", SectionType.INSIGHTS),
            ("Community Analysis", SectionType.ANALYSIS),
        ]
        sections = [
            NewsletterSection(title=title, content=paragraph, type=kind)
            for (title, kind), paragraph in zip(headings, middle[:-1])
        ]
    elif len(middle) == 1:
        sections = [NewsletterSection(title="Community Insights", content=middle[0], type=SectionType.INSIGHTS)]
    else:
        sections = [NewsletterSection(
            title="Overview",
            content="Analysis of the latest trends and discussions in the community.",
            type=SectionType.SUMMARY,
        )]

    return Newsletter(
        title=_extract_title(cleaned, topic),
        introduction=paragraphs[0] if paragraphs else f"Here's what's happening in the {topic} space this week.",
        sections=sections,
        key_takeaways=[
            f"Stay updated with the latest {topic} developments",
            "Engage with the community for insights and discussions",
            "Explore practical applications and real-world use cases",
            "Monitor emerging trends and opportunities",
        ],
        conclusion=paragraphs[-1] if paragraphs else f"The {topic} landscape continues to evolve rapidly.",
        tone=Tone.PROFESSIONAL,
    )


def parse_newsletter_response(text: str, topic: str) -> Newsletter:
    """Parse a model reply into a Newsletter, falling back to text heuristics."""
    cleaned = re.sub(r'```(?:json)?\s*', '', (text or '').strip())
    match = re.search(r'\{.*\}', cleaned, re.DOTALL)
    if match:
        try:
            data = json.loads(match.group(0))
            if isinstance(data, dict):
                return Newsletter.from_raw(data, topic)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse narrative response as JSON: {e}")
        except ValidationError as e:
            logger.warning(f"Narrative response did not match the newsletter shape: {e.error_count()} errors")

    logger.info("Using fallback newsletter generation")
    return fallback_newsletter(text, topic)


class NarrativeProvider(ABC):
    """Abstract base class for newsletter narrative providers."""

    @abstractmethod
    async def generate_newsletter(
        self,
        topic: str,
        posts: Sequence[ContentItem],
        comments: Sequence[ReplyItem],
        window: TimeWindow = TimeWindow.WEEK,
        fmt: NewsletterFormat = NewsletterFormat.DETAILED,
    ) -> Newsletter:
        """
        Write a newsletter from aggregated posts and comments.

        Raises:
            NarrativeError: If the provider cannot produce a newsletter
        """

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Check provider health and availability."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identification name."""

    async def aclose(self) -> None:
        """Release network resources, if any."""


class DummyNarrativeProvider(NarrativeProvider):
    """
    Offline provider that assembles a newsletter from the aggregated data.

    Output is fully determined by its inputs; no external calls are made.
    """

    def __init__(self):
        self.call_count = 0

    @property
    def provider_name(self) -> str:
        return "DummyNarrative"

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "provider": self.provider_name,
            "calls_made": self.call_count,
            "timestamp": isoformat_utc(),
        }

    async def generate_newsletter(
        self,
        topic: str,
        posts: Sequence[ContentItem],
        comments: Sequence[ReplyItem],
        window: TimeWindow = TimeWindow.WEEK,
        fmt: NewsletterFormat = NewsletterFormat.DETAILED,
    ) -> Newsletter:
        self.call_count += 1
        period = "week" if TimeWindow(window) == TimeWindow.WEEK else "month"
        ranked = sorted(posts, key=_prompt_priority, reverse=True)[:MAX_PROMPT_POSTS]

        sections = []
        if ranked:
            lines = [
                f"[{post.title}](https://reddit.com{post.permalink}) in r/{post.subreddit} "
                f"with {post.score} upvotes"
                for post in ranked[:3]
            ]
            sections.append({"title": "Trending Discussions", "content": "; ".join(lines), "type": "trends"})

        if comments:
            best = max(comments, key=lambda c: c.score)
            sections.append({
                "title": "Community Voices",
                "content": f'u/{best.author} said: "{clamp_length(_one_line(best.body), COMMENT_BODY_CHARS)}"',
                "type": "discussions",
            })

        subs = top_subreddits(posts)
        if subs and fmt != NewsletterFormat.BRIEF:
            sections.append({
                "title": "Where the Conversation Happens",
                "content": f"Most active communities this {period}: {subs}.",
                "type": "analysis",
            })

        takeaways = [f"{post.title} ({post.score} upvotes)" for post in ranked[:4]]
        return Newsletter.from_raw(
            {
                "title": f"{topic}: This {period.capitalize()} on Reddit",
                "introduction": (
                    f"We read {len(posts)} posts and {len(comments)} comments about {topic} "
                    f"from the past {period}. Here is what stood out."
                ),
                "sections": sections,
                "key_takeaways": takeaways,
                "conclusion": f"The {topic} conversation keeps moving. See you next {period}.",
                "tone": Tone.PROFESSIONAL.value,
            },
            topic,
        )


class NoNarrativeProvider(NarrativeProvider):
    """Provider used when narrative generation is switched off."""

    @property
    def provider_name(self) -> str:
        return "NoNarrative"

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "unavailable",
            "provider": self.provider_name,
            "message": "No narrative provider configured",
            "timestamp": isoformat_utc(),
        }

    async def generate_newsletter(self, topic, posts, comments, window=TimeWindow.WEEK,
                                  fmt=NewsletterFormat.DETAILED) -> Newsletter:
        raise NarrativeError("No narrative provider available")


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in (429, 500, 502, 503, 504)
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError))


class OpenAINarrativeProvider(NarrativeProvider):
    """
    Chat-completions backed provider.

    Every generation is charged against a MonthlyRateLimiter before the
    request is sent; an exhausted budget raises NarrativeError without
    contacting the API.
    """

    def __init__(
        self,
        api_key: str,
        limiter: MonthlyRateLimiter,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise NarrativeError("OPENAI_API_KEY is required for the openai narrative provider")
        self.model = model
        self.limiter = limiter
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip('/'),
            timeout=httpx.Timeout(timeout),
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    @property
    def provider_name(self) -> str:
        return "OpenAI"

    async def aclose(self) -> None:
        await self.client.aclose()

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy" if self.limiter.can_make_request() else "budget_exhausted",
            "provider": self.provider_name,
            "model": self.model,
            "remaining_calls": self.limiter.remaining_calls(),
            "timestamp": isoformat_utc(),
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4.0),
        retry=retry_if_exception(_is_retryable),
        reraise=True
    )
    async def _complete(self, prompt: str) -> str:
        response = await self.client.post("/chat/completions", json={
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 3000,
        })
        response.raise_for_status()
        data = response.json()
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise NarrativeError("Unexpected response shape from narrative API")

    async def generate_newsletter(
        self,
        topic: str,
        posts: Sequence[ContentItem],
        comments: Sequence[ReplyItem],
        window: TimeWindow = TimeWindow.WEEK,
        fmt: NewsletterFormat = NewsletterFormat.DETAILED,
    ) -> Newsletter:
        if not self.limiter.can_make_request():
            raise NarrativeError("Monthly narrative budget exhausted")

        prompt = build_prompt(topic, prepare_content(posts, comments), window, NewsletterFormat(fmt))
        self.limiter.record_request()
        start_time = time.time()
        logger.info(
            f"Requesting narrative for '{topic}'",
            extra={"model": self.model, "prompt_chars": len(prompt)},
        )

        try:
            text = await self._complete(prompt)
        except httpx.HTTPStatusError as e:
            raise NarrativeError(f"Narrative API returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NarrativeError(f"Narrative API request failed: {type(e).__name__}") from e
        except ValueError as e:
            raise NarrativeError(f"Narrative API returned invalid JSON: {e}") from e

        if not text.strip():
            raise NarrativeError("No response from narrative API")

        logger.info(f"Narrative for '{topic}' generated in {time.time() - start_time:.2f}s")
        return parse_newsletter_response(text, topic)


class NarrativeProviderFactory:
    """Factory for creating narrative provider instances."""

    _providers: Dict[str, Type[NarrativeProvider]] = {
        "dummy": DummyNarrativeProvider,
        "none": NoNarrativeProvider,
        "openai": OpenAINarrativeProvider,
    }

    @classmethod
    def create_provider(cls, provider_type: str = "dummy", **config) -> NarrativeProvider:
        """
        Create a narrative provider instance.

        Args:
            provider_type: "dummy", "none" or "openai"
            **config: Provider-specific keyword arguments

        Returns:
            NarrativeProvider instance
        """
        provider_type = (provider_type or "dummy").lower()
        if provider_type not in cls._providers:
            logger.warning(f"Unknown provider type: {provider_type}, falling back to dummy")
            provider_type = "dummy"

        provider_class = cls._providers[provider_type]
        if provider_type == "openai":
            return provider_class(**config)
        return provider_class()

    @classmethod
    def register_provider(cls, name: str, provider_class: Type[NarrativeProvider]) -> None:
        cls._providers[name] = provider_class

    @classmethod
    def list_providers(cls) -> List[str]:
        return list(cls._providers.keys())
