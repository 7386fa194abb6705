"""Tests for comment tree flattening and thread fetching."""
import httpx
import pytest

from conftest import comment_node, comment_tree
from newsletterbot.core.cache import ResponseCache
from newsletterbot.core.errors import NotFound
from newsletterbot.ingestor.reddit import RedditClient
from newsletterbot.ingestor.threads import ThreadFetcher, flatten_reply_tree


def test_flatten_is_depth_first_and_keeps_nested_scores():
    tree = comment_tree("p1", [
        comment_node("c1", "top level", score=50, replies=[
            comment_node("c2", "nested", score=7, author="carol", replies=[
                comment_node("c3", "deeper", score=3),
            ]),
        ]),
        comment_node("c4", "second top", score=20),
    ])

    replies = flatten_reply_tree(tree)

    assert [r.id for r in replies] == ["c1", "c2", "c3", "c4"]
    assert replies[1].score == 7
    assert replies[1].author == "carol"


def test_flatten_skips_more_stubs_and_removed_bodies():
    more = {"kind": "more", "data": {"id": "m1", "children": ["x", "y"]}}
    tree = comment_tree("p1", [
        comment_node("c1", "[deleted]"),
        comment_node("c2", "[removed]"),
        comment_node("c3", ""),
        more,
        comment_node("c4", "kept"),
    ])

    assert [r.id for r in flatten_reply_tree(tree)] == ["c4"]


def test_flatten_tolerates_malformed_input():
    assert flatten_reply_tree(None) == []
    assert flatten_reply_tree([{}]) == []
    assert flatten_reply_tree([{}, {"data": {"children": "nope"}}]) == []


@pytest.mark.asyncio
async def test_thread_fetcher_caches_flattened_replies():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json=comment_tree("p1", [comment_node("c1", "hello", score=9)]))

    client = RedditClient(base_url="https://reddit.test", transport=httpx.MockTransport(handler))
    fetcher = ThreadFetcher(client, ResponseCache(ttl_seconds=60))

    first = await fetcher.replies_for("p1")
    second = await fetcher.replies_for("p1")
    await client.aclose()

    assert calls == ["/comments/p1.json"]
    assert [r.id for r in first] == [r.id for r in second] == ["c1"]


@pytest.mark.asyncio
async def test_thread_fetcher_propagates_fetch_errors():
    client = RedditClient(base_url="https://reddit.test", transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    fetcher = ThreadFetcher(client, ResponseCache(ttl_seconds=60))

    with pytest.raises(NotFound):
        await fetcher.replies_for("gone")
    await client.aclose()
