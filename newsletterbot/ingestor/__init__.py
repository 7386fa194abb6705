"""Content ingestion from Reddit.

- reddit.py: HTTP client with typed errors
- source.py: cached community listings
- threads.py: comment tree fetching and flattening
"""

from .reddit import RedditClient
from .source import CommunitySource, posts_key, replies_key, window_key
from .threads import ThreadFetcher, flatten_reply_tree

__all__ = [
    'RedditClient',
    'CommunitySource',
    'ThreadFetcher',
    'flatten_reply_tree',
    'posts_key',
    'window_key',
    'replies_key',
]
