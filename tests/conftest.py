"""Shared fixtures and Reddit payload builders."""
from typing import Any, Dict, List, Optional

import pytest

from newsletterbot.core.models import ContentItem, ReplyItem


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_post(
    post_id: str,
    title: str,
    score: int = 10,
    num_comments: int = 2,
    subreddit: str = "test",
    author: str = "alice",
    selftext: str = "",
) -> ContentItem:
    return ContentItem(
        id=post_id,
        title=title,
        selftext=selftext,
        author=author,
        subreddit=subreddit,
        score=score,
        num_comments=num_comments,
        created_utc=1700000000.0,
        permalink=f"/r/{subreddit}/comments/{post_id}/",
        url=f"https://reddit.com/r/{subreddit}/comments/{post_id}/",
    )


def make_reply(reply_id: str, body: str, score: int = 10, author: str = "bob") -> ReplyItem:
    return ReplyItem(
        id=reply_id,
        body=body,
        author=author,
        score=score,
        created_utc=1700000000.0,
        parent_id="t3_parent",
        permalink=f"/r/test/comments/parent/{reply_id}/",
    )


def post_data(post_id: str, title: str, **fields) -> Dict[str, Any]:
    data = {
        "id": post_id,
        "title": title,
        "selftext": "",
        "url": f"https://reddit.com/{post_id}",
        "author": "alice",
        "subreddit": "test",
        "score": 10,
        "num_comments": 2,
        "created_utc": 1700000000,
        "permalink": f"/r/test/comments/{post_id}/",
    }
    data.update(fields)
    return data


def listing(*posts: Dict[str, Any]) -> Dict[str, Any]:
    return {"kind": "Listing", "data": {"children": [{"kind": "t3", "data": p} for p in posts]}}


def comment_node(
    comment_id: str,
    body: str,
    score: int = 10,
    author: str = "bob",
    replies: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    return {
        "kind": "t1",
        "data": {
            "id": comment_id,
            "body": body,
            "author": author,
            "score": score,
            "created_utc": 1700000000,
            "parent_id": "t3_parent",
            "permalink": f"/r/test/comments/parent/{comment_id}/",
            "replies": {"kind": "Listing", "data": {"children": replies}} if replies else "",
        },
    }


def comment_tree(post_id: str, nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [listing(post_data(post_id, "parent")), {"kind": "Listing", "data": {"children": nodes}}]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Records requested pause durations without sleeping."""
    calls: List[float] = []

    async def fake_sleep(seconds: float) -> None:
        calls.append(seconds)

    fake_sleep.calls = calls
    return fake_sleep


@pytest.fixture
def sample_posts():
    return [
        make_post("p1", "NBA Finals basketball recap", score=120, num_comments=40, author="hoops"),
        make_post("p2", "Weekly recipe roundup", score=15, num_comments=3, author="chef"),
        make_post("p3", "Best basketball shoes", selftext="Which basketball shoes do you like?",
                  score=60, num_comments=12, author="hoops"),
        make_post("p4", "Deleted account post about basketball", score=5, num_comments=1, author="[deleted]"),
    ]
