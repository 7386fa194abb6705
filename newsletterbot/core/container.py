"""Composition root: builds and owns the service's long-lived components."""
from dataclasses import dataclass
from typing import Optional

import httpx

from newsletterbot.core.cache import ResponseCache
from newsletterbot.core.logging import get_logger
from newsletterbot.core.rate_limiter import MonthlyRateLimiter
from newsletterbot.core.settings import Settings, get_settings
from newsletterbot.ingestor.reddit import RedditClient
from newsletterbot.ingestor.source import CommunitySource
from newsletterbot.ingestor.threads import ThreadFetcher
from newsletterbot.rewriter.llm_provider import NarrativeProvider, NarrativeProviderFactory
from newsletterbot.rewriter.template_renderer import TemplateRenderer
from newsletterbot.trender.pipeline import AggregationLimits, TopicAggregator
from newsletterbot.trender.score import RelevanceScorer
from newsletterbot.trender.signals import Vocabulary
from newsletterbot.trender.topics import TopicRouter

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything a request handler needs, created once per process."""
    settings: Settings
    cache: ResponseCache
    client: RedditClient
    source: CommunitySource
    threads: ThreadFetcher
    router: TopicRouter
    scorer: RelevanceScorer
    vocabulary: Vocabulary
    aggregator: TopicAggregator
    limiter: MonthlyRateLimiter
    narrator: NarrativeProvider
    renderer: TemplateRenderer

    async def aclose(self) -> None:
        await self.client.aclose()
        await self.narrator.aclose()
        logger.info("Service container closed")


def build_narrator(settings: Settings, limiter: MonthlyRateLimiter) -> NarrativeProvider:
    if settings.narrative_provider.lower() == "openai":
        return NarrativeProviderFactory.create_provider(
            "openai",
            api_key=settings.openai_api_key,
            limiter=limiter,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout_seconds,
        )
    return NarrativeProviderFactory.create_provider(settings.narrative_provider)


def build_container(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    narrator: Optional[NarrativeProvider] = None,
) -> ServiceContainer:
    """
    Wire the service from settings.

    Args:
        settings: Application settings (defaults to get_settings())
        transport: Optional httpx transport for the Reddit client
        narrator: Optional narrative provider overriding the configured one

    Returns:
        ServiceContainer ready for use; call aclose() on shutdown
    """
    settings = settings or get_settings()

    cache = ResponseCache(ttl_seconds=settings.reddit_cache_ttl_seconds)
    client = RedditClient(
        base_url=settings.reddit_base_url,
        user_agent=settings.reddit_user_agent,
        timeout=settings.reddit_timeout_seconds,
        transport=transport,
    )
    source = CommunitySource(client, cache)
    threads = ThreadFetcher(client, cache)
    router = TopicRouter.load_from_yaml(settings.topics_config_path, max_communities=settings.max_communities)
    vocabulary = Vocabulary.load_from_yaml(settings.vocabulary_config_path)
    scorer = RelevanceScorer()
    limiter = MonthlyRateLimiter(settings.llm_monthly_budget, name="narrative")

    aggregator = TopicAggregator(
        router=router,
        source=source,
        threads=threads,
        scorer=scorer,
        vocabulary=vocabulary,
        limits=AggregationLimits.from_settings(settings),
    )

    logger.info(
        "Service container built",
        extra={
            "topic_routes": len(router.routes),
            "narrative_provider": settings.narrative_provider,
            "cache_ttl_seconds": settings.reddit_cache_ttl_seconds,
        },
    )

    return ServiceContainer(
        settings=settings,
        cache=cache,
        client=client,
        source=source,
        threads=threads,
        router=router,
        scorer=scorer,
        vocabulary=vocabulary,
        aggregator=aggregator,
        limiter=limiter,
        narrator=narrator or build_narrator(settings, limiter),
        renderer=TemplateRenderer(),
    )
