"""NewsletterBot FastAPI application."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from newsletterbot.core.container import ServiceContainer, build_container
from newsletterbot.core.errors import (
    FetchTimeout,
    NarrativeError,
    NetworkUnreachable,
    NoContentError,
    RateLimited,
)
from newsletterbot.core.logging import get_logger, setup_logging
from newsletterbot.core.models import NEWSLETTER_WINDOWS, DomainAnalysis, TimeWindow
from newsletterbot.core.settings import Settings, get_settings
from newsletterbot.core.time import isoformat_utc
from newsletterbot.rewriter.models import NewsletterFormat
from newsletterbot.trender.signals import engagement_stats

SERVICE_NAME = "newsletterbot"
VERSION = "0.1.0"
MAX_SUBREDDITS_PER_REQUEST = 10
MIN_TOPIC_LENGTH = 2
OUTPUT_FORMATS = ("json", "markdown")

logger = get_logger(__name__)


class InvalidRequest(ValueError):
    """Query parameters failed validation."""


def error_response(exc: Exception) -> JSONResponse:
    """Map an exception to the JSON error envelope and status code."""
    if isinstance(exc, RateLimited):
        retry_after = int(exc.retry_after) if exc.retry_after else 60
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "error": "Reddit API rate limit exceeded. Please try again in a few minutes.",
                "retryAfter": retry_after,
            },
        )
    if isinstance(exc, (FetchTimeout, asyncio.TimeoutError)):
        return JSONResponse(
            status_code=408,
            content={
                "success": False,
                "error": "Request timeout. Reddit API is taking too long to respond.",
                "retryAfter": 30,
            },
        )
    if isinstance(exc, NetworkUnreachable):
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "error": "Network connectivity issue. Unable to reach Reddit API.",
                "retryAfter": 60,
            },
        )
    if isinstance(exc, NoContentError):
        return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})
    if isinstance(exc, ValueError):
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    logger.error(f"Unhandled error: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or "Internal server error"})


def parse_subreddits(raw: Optional[str]) -> List[str]:
    if not raw:
        raise InvalidRequest("Subreddits parameter is required")
    names = [name.strip() for name in raw.split(",") if name.strip()]
    if not names:
        raise InvalidRequest("At least one subreddit is required")
    if len(names) > MAX_SUBREDDITS_PER_REQUEST:
        raise InvalidRequest(f"Maximum {MAX_SUBREDDITS_PER_REQUEST} subreddits allowed per request")
    return names


def parse_window(raw: str) -> TimeWindow:
    try:
        window = TimeWindow(raw)
    except ValueError:
        window = None
    if window not in NEWSLETTER_WINDOWS:
        raise InvalidRequest("timeFilter must be 'week' or 'month'")
    return window


def parse_output(raw: str) -> str:
    if raw not in OUTPUT_FORMATS:
        raise InvalidRequest("output must be 'json' or 'markdown'")
    return raw


def get_container(request: Request) -> ServiceContainer:
    """Dependency returning the process-wide service container."""
    return request.app.state.container


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to get_settings())
        container: Pre-built container; when omitted one is built on startup
            and closed on shutdown
    """
    settings = settings or (container.settings if container else get_settings())
    setup_logging(SERVICE_NAME, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, "container", None) is None
        if owned:
            app.state.container = build_container(settings)
        logger.info(
            "Starting newsletterbot service",
            extra={
                "service": SERVICE_NAME,
                "version": VERSION,
                "environment": settings.environment,
                "cache_admin_enabled": settings.allow_cache_admin,
            },
        )
        yield
        logger.info("Shutting down newsletterbot service")
        if owned:
            await app.state.container.aclose()

    app = FastAPI(
        title="NewsletterBot",
        version=VERSION,
        description="Topic newsletters from Reddit community discussions",
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @app.get("/healthz")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "service": SERVICE_NAME}

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "endpoints": {
                "health": "/healthz",
                "topic_newsletter": "/topic-newsletter?topic=...&timeFilter=week|month",
                "reddit": "/reddit?subreddits=a,b&limit=10",
                "reddit_newsletter": "/reddit-newsletter?subreddits=a,b&includeAnalysis=true",
                "status": "/status",
                "cache_clear": "/cache/clear (POST)" if settings.allow_cache_admin else "/cache/clear (disabled)",
            },
        }

    @app.get("/topic-newsletter")
    async def topic_newsletter(
        topic: Optional[str] = Query(None),
        time_filter: str = Query("week", alias="timeFilter"),
        fmt: str = Query("detailed", alias="format"),
        output: str = Query("json"),
        container: ServiceContainer = Depends(get_container),
    ):
        """
        Aggregate Reddit content for a topic and write a newsletter.

        Returns the aggregation result plus a generated narrative, either as
        JSON or rendered markdown.
        """
        try:
            if not topic:
                raise InvalidRequest("Topic parameter is required")
            if len(topic.strip()) < MIN_TOPIC_LENGTH:
                raise InvalidRequest(f"Topic must be at least {MIN_TOPIC_LENGTH} characters long")
            window = parse_window(time_filter)
            output = parse_output(output)
            try:
                newsletter_format = NewsletterFormat(fmt)
            except ValueError:
                raise InvalidRequest("format must be 'brief', 'detailed' or 'visual'")

            logger.info(
                f"Generating topic newsletter for '{topic}'",
                extra={"topic": topic, "time_filter": window.value, "format": newsletter_format.value},
            )

            async def build():
                result = await container.aggregator.build_topic_result(topic, window)
                try:
                    narrative = await container.narrator.generate_newsletter(
                        topic, result.top_posts, result.top_comments, window, newsletter_format
                    )
                    return result, narrative, None
                except NarrativeError as e:
                    logger.warning(f"Narrative generation failed for '{topic}': {e}")
                    return result, None, str(e)

            result, narrative, narrative_error = await asyncio.wait_for(
                build(), timeout=container.settings.request_budget_seconds
            )

        except Exception as e:
            logger.error(f"Topic newsletter failed for '{topic}': {e}")
            return error_response(e)

        if output == "markdown":
            markdown = container.renderer.render_topic_newsletter(result, narrative)
            return PlainTextResponse(markdown, media_type="text/markdown")

        newsletter: Dict[str, Any] = result.to_dict()
        newsletter["narrative"] = narrative.model_dump(mode="json") if narrative else None
        meta = {
            "cache_stats": container.cache.stats().to_dict(),
            "search_query": topic,
            "time_filter": window.value,
            "used_fallback": result.used_fallback,
            "narrative_provider": container.narrator.provider_name,
        }
        if narrative_error:
            meta["narrative_error"] = narrative_error
        return {"success": True, "newsletter": newsletter, "meta": meta}

    @app.get("/reddit")
    async def reddit_posts(
        subreddits: Optional[str] = Query(None),
        limit: int = Query(10, ge=1, le=100),
        container: ServiceContainer = Depends(get_container),
    ):
        """Trending (hot) posts across a comma-separated list of subreddits."""
        try:
            names = parse_subreddits(subreddits)
            logger.info(f"Fetching posts from subreddits: {', '.join(names)}")
            posts = await asyncio.wait_for(
                container.aggregator.fetch_trending_posts(names, limit),
                timeout=container.settings.request_budget_seconds,
            )
        except Exception as e:
            return error_response(e)

        return {
            "success": True,
            "data": [asdict(post) for post in posts],
            "meta": {
                "subreddits": names,
                "total_posts": len(posts),
                "cache_stats": container.cache.stats().to_dict(),
            },
        }

    @app.get("/reddit-newsletter")
    async def reddit_newsletter(
        subreddits: Optional[str] = Query(None),
        time_filter: str = Query("week", alias="timeFilter"),
        include_analysis: bool = Query(False, alias="includeAnalysis"),
        output: str = Query("json"),
        container: ServiceContainer = Depends(get_container),
    ):
        """
        Community newsletter for explicit subreddits.

        With includeAnalysis=true this runs the full domain analysis
        (trending keywords, contributors, insights); otherwise it summarizes
        the current hot posts.
        """
        try:
            names = parse_subreddits(subreddits)
            window = parse_window(time_filter)
            output = parse_output(output)
            logger.info(f"Generating Reddit newsletter for: {', '.join(names)} ({window.value})")

            if include_analysis:
                analysis = await asyncio.wait_for(
                    container.aggregator.build_domain_analysis(names, window),
                    timeout=container.settings.request_budget_seconds,
                )
            else:
                posts = await asyncio.wait_for(
                    container.aggregator.fetch_trending_posts(names, 20),
                    timeout=container.settings.request_budget_seconds,
                )
                analysis = DomainAnalysis(
                    subreddits=tuple(names),
                    time_filter=window,
                    total_posts=len(posts),
                    top_posts=tuple(posts),
                    trending_keywords=(),
                    top_contributors=(),
                    engagement=engagement_stats(posts, subreddits_searched=len(names)),
                )
        except Exception as e:
            return error_response(e)

        if output == "markdown":
            return PlainTextResponse(container.renderer.render_domain_analysis(analysis), media_type="text/markdown")

        newsletter = {"title": f"Reddit Newsletter: {', '.join(names)}"}
        newsletter.update(analysis.to_dict())
        return {
            "success": True,
            "newsletter": newsletter,
            "meta": {"cache_stats": container.cache.stats().to_dict()},
        }

    @app.get("/status")
    async def service_status(container: ServiceContainer = Depends(get_container)):
        """Cache statistics and remaining narrative budget."""
        return {
            "success": True,
            "timestamp": isoformat_utc(),
            "apis": {
                "reddit": {
                    "status": "operational",
                    "cache": container.cache.stats().to_dict(),
                    "rate_limit": "No limit (respectful crawling)",
                },
                "narrative": {
                    "provider": container.narrator.provider_name,
                    "monthly_budget": container.limiter.monthly_budget,
                    "remaining_calls": container.limiter.remaining_calls(),
                },
            },
        }

    @app.post("/cache/clear")
    async def clear_cache(container: ServiceContainer = Depends(get_container)):
        """Drop all cached responses. Requires ALLOW_CACHE_ADMIN=true."""
        if not container.settings.allow_cache_admin:
            return JSONResponse(
                status_code=403,
                content={
                    "success": False,
                    "error": "Cache administration is disabled. Set ALLOW_CACHE_ADMIN=true to enable.",
                },
            )
        container.cache.clear()
        return {"success": True, "cache": container.cache.stats().to_dict()}

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    logger.info("Starting newsletterbot service via uvicorn")
    uvicorn.run(
        "newsletterbot.trender.app:app",
        host=settings.service_host,
        port=settings.service_port or 8002,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
