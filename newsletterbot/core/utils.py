"""
Utility functions for NewsletterBot.

Text normalization, truncation and markdown-safe escaping shared by the
signal extractors, the narrative providers and the renderer.
"""

import re
import unicodedata
from typing import List

# C0/C1 control characters except tab and newline
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b-\x1f\x7f-\x9f]')
_MARKDOWN_SPECIAL = re.compile(r'([\\`*_{}\[\]()#+\-!|>])')
_WORD_PATTERN = re.compile(r'\b\w{4,}\b')


def clean_text(text: str) -> str:
    """
    Clean text content by removing extra whitespace and normalizing.

    Args:
        text: Text to clean

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    # Normalize unicode
    text = unicodedata.normalize('NFKC', text)

    text = strip_control_chars(text)

    # Remove extra whitespace
    text = re.sub(r'\s+', ' ', text)

    return text.strip()


def strip_control_chars(text: str) -> str:
    """Remove control characters that break email clients and markdown."""
    if not text:
        return ""
    return _CONTROL_CHARS.sub('', text)


def clamp_length(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Ensure text is at most max_length characters, breaking on a word
    boundary when one is reasonably close to the limit.
    """
    if not text or len(text) <= max_length:
        return text or ""

    target_length = max(max_length - len(suffix), 0)
    truncated = text[:target_length]
    last_space = truncated.rfind(' ')
    if last_space > target_length * 0.7:
        truncated = truncated[:last_space]

    return truncated.rstrip() + suffix


def escape_markdown(text: str) -> str:
    """Escape markdown metacharacters in user-supplied text."""
    if not text:
        return ""
    return _MARKDOWN_SPECIAL.sub(r'\\\1', text)


def extract_words(text: str) -> List[str]:
    """Lower-cased words of four or more word characters, in order."""
    if not text:
        return []
    return _WORD_PATTERN.findall(text.lower())
