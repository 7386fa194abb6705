"""API tests for the newsletterbot service."""
import asyncio
import re
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import comment_node, comment_tree, listing, post_data
from newsletterbot.core.container import build_container
from newsletterbot.core.errors import FetchTimeout, NetworkUnreachable, NoContentError, RateLimited
from newsletterbot.core.settings import Settings
from newsletterbot.rewriter.llm_provider import DummyNarrativeProvider
from newsletterbot.trender.app import create_app, error_response

LISTINGS = {
    "artificial": [
        post_data("a1", "Agentic AI is everywhere", score=250, num_comments=60, subreddit="artificial", author="ada"),
        post_data("a2", "Cooking with cast iron", score=900, num_comments=10, subreddit="artificial"),
    ],
    "MachineLearning": [
        post_data("m1", "Benchmarking agentic planners", score=120, num_comments=30,
                  subreddit="MachineLearning", author="turing"),
    ],
    "python": [
        post_data("py1", "Python 3.14 released", score=500, num_comments=80, subreddit="python", author="guido"),
        post_data("py2", "AI tooling for Python", score=100, num_comments=25, subreddit="python", author="guido"),
    ],
    "rust": [
        post_data("rs1", "Rust startup raises funding", score=300, num_comments=45, subreddit="rust", author="ferris"),
    ],
    "empty": [],
}

COMMENT_PATH = re.compile(r"^/comments/(?P<id>[^/.]+)\.json$")
LISTING_PATH = re.compile(r"^/r/(?P<community>[^/]+)/(top|hot)\.json$")


def fake_reddit(request: httpx.Request) -> httpx.Response:
    match = COMMENT_PATH.match(request.url.path)
    if match:
        post_id = match.group("id")
        return httpx.Response(200, json=comment_tree(post_id, [
            comment_node(f"{post_id}-c1", "Great discussion", score=25),
            comment_node(f"{post_id}-c2", "meh", score=2),
        ]))

    match = LISTING_PATH.match(request.url.path)
    if match and match.group("community") in LISTINGS:
        limit = int(request.url.params.get("limit", 10))
        return httpx.Response(200, json=listing(*LISTINGS[match.group("community")][:limit]))
    return httpx.Response(404)


def make_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        community_delay_seconds=0,
        item_delay_seconds=0,
        reddit_base_url="https://reddit.test",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def container():
    return build_container(
        make_settings(),
        transport=httpx.MockTransport(fake_reddit),
        narrator=DummyNarrativeProvider(),
    )


@pytest.fixture
def client(container):
    with TestClient(create_app(container=container)) as test_client:
        yield test_client


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "newsletterbot"}


def test_root_lists_endpoints(client):
    data = client.get("/").json()

    assert data["service"] == "newsletterbot"
    assert data["version"] == "0.1.0"
    assert data["endpoints"]["cache_clear"] == "/cache/clear (disabled)"


@pytest.mark.parametrize("query", [
    "",
    "?topic=a",
    "?topic=ai&timeFilter=day",
    "?topic=ai&format=poster",
    "?topic=ai&output=pdf",
])
def test_topic_newsletter_rejects_bad_input(client, query):
    response = client.get(f"/topic-newsletter{query}")

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_topic_newsletter_json(client):
    response = client.get("/topic-newsletter", params={"topic": "Agentic AI", "timeFilter": "week"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True

    newsletter = data["newsletter"]
    assert newsletter["topic"] == "Agentic AI"
    assert newsletter["subreddits"] == ["artificial", "MachineLearning", "OpenAI"]
    assert {p["id"] for p in newsletter["top_posts"]} == {"a1", "m1"}
    assert newsletter["summary"]["total_posts"] == 2
    assert newsletter["summary"]["total_upvotes"] == 370
    assert newsletter["summary"]["average_score"] == 185
    assert [c["score"] for c in newsletter["top_comments"]] == [25, 25]
    assert newsletter["narrative"]["title"] == "Agentic AI: This Week on Reddit"

    meta = data["meta"]
    assert meta["search_query"] == "Agentic AI"
    assert meta["time_filter"] == "week"
    assert meta["used_fallback"] is False
    assert meta["cache_stats"]["keys"] > 0


def test_topic_newsletter_markdown(client):
    response = client.get("/topic-newsletter", params={"topic": "Agentic AI", "output": "markdown"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/markdown")
    assert response.text.startswith("# Agentic AI: This Week on Reddit")


def test_repeated_topic_request_is_served_from_cache():
    paths = []

    def recording(request):
        paths.append(request.url.path)
        return fake_reddit(request)

    container = build_container(
        make_settings(),
        transport=httpx.MockTransport(recording),
        narrator=DummyNarrativeProvider(),
    )
    with TestClient(create_app(container=container)) as client:
        client.get("/topic-newsletter", params={"topic": "Agentic AI"})
        first = list(paths)
        paths.clear()
        client.get("/topic-newsletter", params={"topic": "Agentic AI"})

    assert "/comments/a1.json" in first
    # failed fetches are not cached
    assert paths == ["/r/OpenAI/top.json"]
    assert container.cache.stats().hits > 0


def test_topic_newsletter_falls_back_when_nothing_found(client):
    data = client.get("/topic-newsletter", params={"topic": "underwater basket weaving"}).json()

    assert data["success"] is True
    assert data["meta"]["used_fallback"] is True
    assert data["newsletter"]["summary"]["total_posts"] >= 1


def test_topic_newsletter_survives_narrative_failure(container):
    from newsletterbot.rewriter.llm_provider import NoNarrativeProvider

    container.narrator = NoNarrativeProvider()
    with TestClient(create_app(container=container)) as client:
        data = client.get("/topic-newsletter", params={"topic": "Agentic AI"}).json()

    assert data["success"] is True
    assert data["newsletter"]["narrative"] is None
    assert "narrative_error" in data["meta"]


def test_topic_newsletter_deadline_maps_to_408():
    container = build_container(
        make_settings(request_budget_seconds=0.05),
        transport=httpx.MockTransport(fake_reddit),
        narrator=DummyNarrativeProvider(),
    )

    async def slow(*args, **kwargs):
        await asyncio.sleep(5)

    with patch.object(container.aggregator, "build_topic_result", side_effect=slow):
        with TestClient(create_app(container=container)) as client:
            response = client.get("/topic-newsletter", params={"topic": "Agentic AI"})

    assert response.status_code == 408
    assert response.json()["retryAfter"] == 30


def test_reddit_trending_posts(client):
    response = client.get("/reddit", params={"subreddits": "python, rust", "limit": 4})

    assert response.status_code == 200
    data = response.json()
    assert [p["id"] for p in data["data"]] == ["py1", "rs1", "py2"]
    assert data["meta"]["subreddits"] == ["python", "rust"]
    assert data["meta"]["total_posts"] == 3


@pytest.mark.parametrize("query", ["", "?subreddits=,,", "?subreddits=" + ",".join(f"s{i}" for i in range(11))])
def test_reddit_rejects_bad_subreddit_lists(client, query):
    response = client.get(f"/reddit{query}")

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_reddit_rejects_non_numeric_limit(client):
    response = client.get("/reddit", params={"subreddits": "python", "limit": "lots"})
    assert response.status_code == 400


def test_reddit_newsletter_simple(client):
    data = client.get("/reddit-newsletter", params={"subreddits": "python,rust"}).json()

    newsletter = data["newsletter"]
    assert newsletter["title"] == "Reddit Newsletter: python, rust"
    assert newsletter["total_posts"] == 3
    assert newsletter["engagement"]["total_upvotes"] == 900
    assert newsletter["insights"] == []


def test_reddit_newsletter_with_analysis(client):
    data = client.get(
        "/reddit-newsletter",
        params={"subreddits": "python,rust", "timeFilter": "month", "includeAnalysis": "true"},
    ).json()

    newsletter = data["newsletter"]
    assert newsletter["time_filter"] == "month"
    assert newsletter["engagement"]["total_comments"] == 150
    assert newsletter["top_contributors"][0]["username"] == "guido"
    assert newsletter["insights"][-1].startswith("📅 Monthly roundup")


def test_reddit_newsletter_markdown(client):
    response = client.get(
        "/reddit-newsletter",
        params={"subreddits": "python", "includeAnalysis": "true", "output": "markdown"},
    )

    assert response.status_code == 200
    assert response.text.startswith("# Reddit Newsletter: r/python")


def test_reddit_newsletter_analysis_with_no_posts_is_404(client):
    response = client.get("/reddit-newsletter", params={"subreddits": "empty,nowhere", "includeAnalysis": "true"})

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_status_reports_cache_and_budget(client):
    data = client.get("/status").json()

    assert data["success"] is True
    assert set(data["apis"]["reddit"]["cache"]) == {"hits", "misses", "keys"}
    assert data["apis"]["narrative"]["provider"] == "DummyNarrative"
    assert data["apis"]["narrative"]["remaining_calls"] == 100


def test_cache_clear_requires_admin_switch(client):
    response = client.post("/cache/clear")
    assert response.status_code == 403


def test_cache_clear_when_enabled():
    container = build_container(
        make_settings(allow_cache_admin=True),
        transport=httpx.MockTransport(fake_reddit),
        narrator=DummyNarrativeProvider(),
    )
    with TestClient(create_app(container=container)) as client:
        client.get("/reddit", params={"subreddits": "python"})
        assert container.cache.stats().keys > 0

        response = client.post("/cache/clear")

    assert response.status_code == 200
    assert response.json()["cache"] == {"hits": 0, "misses": 0, "keys": 0}


@pytest.mark.parametrize("error,status", [
    (RateLimited("slow down", retry_after=12), 429),
    (FetchTimeout("timeout"), 408),
    (asyncio.TimeoutError(), 408),
    (NetworkUnreachable("offline"), 503),
    (NoContentError("nothing"), 404),
    (ValueError("bad input"), 400),
    (RuntimeError("boom"), 500),
])
def test_error_response_mapping(error, status):
    response = error_response(error)
    assert response.status_code == status


def test_rate_limited_uses_retry_after_hint():
    import json

    response = error_response(RateLimited("slow down", retry_after=12))
    assert json.loads(response.body)["retryAfter"] == 12
