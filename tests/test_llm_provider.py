"""Tests for narrative providers and newsletter models."""
import json
from datetime import datetime, timezone

import httpx
import pytest

from conftest import make_post, make_reply
from newsletterbot.core.errors import NarrativeError
from newsletterbot.core.models import TimeWindow
from newsletterbot.core.rate_limiter import MonthlyRateLimiter
from newsletterbot.rewriter.llm_provider import (
    DummyNarrativeProvider,
    NarrativeProviderFactory,
    NoNarrativeProvider,
    OpenAINarrativeProvider,
    fallback_newsletter,
    parse_newsletter_response,
    prepare_content,
)
from newsletterbot.rewriter.models import Newsletter, NewsletterFormat, SectionType, Tone


def fixed_clock():
    return datetime(2025, 9, 15, tzinfo=timezone.utc)


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


VALID_NEWSLETTER = {
    "title": "Agents Everywhere",
    "introduction": "Intro\n\nwith breaks",
    "sections": [
        {"title": "One", "content": "first", "type": "trends"},
        {"title": "Two", "content": "second", "type": "bogus"},
        {"title": "Three", "content": "third", "type": "analysis"},
        {"title": "Four", "content": "fourth", "type": "summary"},
        {"title": "Five", "content": "fifth", "type": "insights"},
    ],
    "keyTakeaways": ["a", "b", "", 7, "c", "d", "e", "f"],
    "conclusion": "Bye",
    "tone": "sarcastic",
}


def test_newsletter_sanitizes_untrusted_fields():
    newsletter = Newsletter.from_raw(VALID_NEWSLETTER, "agents")

    assert newsletter.introduction == "Intro with breaks"
    assert len(newsletter.sections) == 4
    assert newsletter.sections[1].type == SectionType.INSIGHTS
    assert newsletter.key_takeaways == ["a", "b", "c", "d", "e"]
    assert newsletter.tone == Tone.PROFESSIONAL


def test_newsletter_defaults_use_topic():
    newsletter = Newsletter.from_raw({}, "Rust")

    assert newsletter.title == "Rust Weekly Digest"
    assert "Rust" in newsletter.introduction
    assert newsletter.sections == []


def test_long_strings_are_capped():
    newsletter = Newsletter.from_raw({"title": "x" * 5000}, "t")
    assert len(newsletter.title) == 2000


def test_prepare_content_caps_posts_and_comments():
    posts = [make_post(f"p{i}", f"Post {i}", score=i) for i in range(20)]
    comments = [make_reply(f"c{i}", f"Comment {i}", score=i) for i in range(30)]

    digest = prepare_content(posts, comments)

    assert digest.count("ORIGINAL POST:") == 12
    assert digest.count("COMMENT:") == 20
    assert '1. "Post 19"' in digest
    assert "Total Posts: 20 | Total Comments: 30" in digest


def test_prepare_content_weights_relevance():
    from dataclasses import replace

    popular = make_post("pop", "Popular", score=100, num_comments=0)
    relevant = replace(make_post("rel", "Relevant", score=0, num_comments=0), relevance_score=100.0)

    digest = prepare_content([popular, relevant], [])

    assert digest.index("Relevant") < digest.index("Popular")


def test_parse_fenced_json_response():
    text = "```json\n" + json.dumps(VALID_NEWSLETTER) + "\n```"
    newsletter = parse_newsletter_response(text, "agents")
    assert newsletter.title == "Agents Everywhere"


def test_parse_plain_text_falls_back():
    text = (
        "Agents Take Over the Week\n\n"
        "This week the community talked about agents a lot.\n\n"
        "People compared frameworks and shared benchmarks.\n\n"
        "Others worried about reliability and costs in production.\n\n"
        "In short, agents are here to stay for a while."
    )
    newsletter = parse_newsletter_response(text, "agents")

    assert newsletter.sections[0].title == "Trending Discussions"
    assert newsletter.conclusion == "In short, agents are here to stay for a while."
    assert len(newsletter.key_takeaways) == 4


def test_fallback_newsletter_with_no_paragraphs():
    newsletter = fallback_newsletter("", "Rust")

    assert newsletter.title == "Rust Weekly Digest"
    assert newsletter.sections[0].type == SectionType.SUMMARY


@pytest.mark.asyncio
async def test_dummy_provider_is_deterministic():
    posts = [make_post("p1", "Agents ship", score=90, subreddit="artificial")]
    comments = [make_reply("c1", "Love it", score=12)]
    provider = DummyNarrativeProvider()

    first = await provider.generate_newsletter("Agents", posts, comments, TimeWindow.WEEK)
    second = await provider.generate_newsletter("Agents", posts, comments, TimeWindow.WEEK)

    assert first == second
    assert first.title == "Agents: This Week on Reddit"
    assert provider.call_count == 2
    assert (await provider.health_check())["status"] == "healthy"


@pytest.mark.asyncio
async def test_dummy_provider_brief_has_fewer_sections():
    posts = [make_post("p1", "Agents ship", score=90)]
    provider = DummyNarrativeProvider()

    detailed = await provider.generate_newsletter("Agents", posts, [], TimeWindow.MONTH, NewsletterFormat.DETAILED)
    brief = await provider.generate_newsletter("Agents", posts, [], TimeWindow.MONTH, NewsletterFormat.BRIEF)

    assert len(brief.sections) < len(detailed.sections)


@pytest.mark.asyncio
async def test_no_provider_raises():
    with pytest.raises(NarrativeError):
        await NoNarrativeProvider().generate_newsletter("x", [], [])


@pytest.mark.asyncio
async def test_openai_provider_success_consumes_budget():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=completion(json.dumps(VALID_NEWSLETTER)))

    limiter = MonthlyRateLimiter(5, clock=fixed_clock)
    provider = OpenAINarrativeProvider(
        api_key="sk-test", limiter=limiter, base_url="https://llm.test/v1",
        transport=httpx.MockTransport(handler),
    )

    newsletter = await provider.generate_newsletter("agents", [make_post("p1", "agents")], [])
    await provider.aclose()

    assert newsletter.title == "Agents Everywhere"
    assert limiter.remaining_calls() == 4
    assert seen[0]["model"] == "gpt-4o-mini"
    assert seen[0]["messages"][1]["role"] == "user"


@pytest.mark.asyncio
async def test_openai_provider_refuses_when_budget_exhausted():
    calls = []
    limiter = MonthlyRateLimiter(0, clock=fixed_clock)
    provider = OpenAINarrativeProvider(
        api_key="sk-test", limiter=limiter,
        transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200, json=completion("{}"))),
    )

    with pytest.raises(NarrativeError):
        await provider.generate_newsletter("agents", [], [])
    await provider.aclose()

    assert calls == []


@pytest.mark.asyncio
async def test_openai_provider_client_error_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, json={"error": "bad key"})

    provider = OpenAINarrativeProvider(
        api_key="sk-bad", limiter=MonthlyRateLimiter(5, clock=fixed_clock),
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(NarrativeError):
        await provider.generate_newsletter("agents", [], [])
    await provider.aclose()

    assert len(calls) == 1


def test_openai_provider_requires_api_key():
    with pytest.raises(NarrativeError):
        OpenAINarrativeProvider(api_key="", limiter=MonthlyRateLimiter(1))


def test_factory_falls_back_to_dummy():
    assert isinstance(NarrativeProviderFactory.create_provider("mystery"), DummyNarrativeProvider)
    assert isinstance(NarrativeProviderFactory.create_provider("none"), NoNarrativeProvider)
    assert "openai" in NarrativeProviderFactory.list_providers()


def test_unhashable_tone_and_section_type_are_coerced():
    newsletter = Newsletter.from_raw(
        {"title": "t", "tone": ["casual"], "sections": [{"title": "One", "content": "x", "type": {}}]},
        "Rust",
    )

    assert newsletter.tone == Tone.PROFESSIONAL
    assert newsletter.sections[0].type == SectionType.INSIGHTS


def test_parse_response_with_unhashable_fields():
    text = json.dumps({"title": "t", "tone": ["casual"], "sections": [{"type": {}}]})
    newsletter = parse_newsletter_response(text, "Rust")

    assert newsletter.title == "t"
    assert newsletter.tone == Tone.PROFESSIONAL


@pytest.mark.asyncio
async def test_openai_provider_tolerates_unhashable_tone():
    body = json.dumps({"title": "Odd", "tone": ["casual"], "sections": [{"type": {}}]})
    provider = OpenAINarrativeProvider(
        api_key="sk-test", limiter=MonthlyRateLimiter(5, clock=fixed_clock),
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json=completion(body))),
    )

    newsletter = await provider.generate_newsletter("agents", [], [])
    await provider.aclose()

    assert newsletter.title == "Odd"
    assert newsletter.sections[0].type == SectionType.INSIGHTS
