"""
Pydantic models for generated newsletters.

Narrative output (from an LLM or the offline generator) is untrusted text,
so every field is sanitized on the way in: strings are collapsed to one
line and capped, section types and tone are coerced to known values, and
list lengths are bounded.
"""

import re
from enum import Enum
from typing import Any, List

from pydantic import BaseModel, Field, field_validator

MAX_TEXT_LENGTH = 2000
MAX_SECTIONS = 4
MAX_TAKEAWAYS = 5

_NEWLINES = re.compile(r'\n+')


class NewsletterFormat(str, Enum):
    """Requested newsletter layout."""
    BRIEF = "brief"
    DETAILED = "detailed"
    VISUAL = "visual"


class SectionType(str, Enum):
    SUMMARY = "summary"
    ANALYSIS = "analysis"
    TRENDS = "trends"
    INSIGHTS = "insights"
    DISCUSSIONS = "discussions"


class Tone(str, Enum):
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    ENTHUSIASTIC = "enthusiastic"


def sanitize_text(value: Any) -> str:
    """Non-strings become empty; newlines collapse to spaces; capped length."""
    if not isinstance(value, str):
        return ""
    return _NEWLINES.sub(' ', value.strip())[:MAX_TEXT_LENGTH]


class NewsletterSection(BaseModel):
    """A single body section of the newsletter."""
    title: str = Field(default="Section", description="Section heading")
    content: str = Field(default="Content not available.", description="Section body (markdown)")
    type: SectionType = Field(default=SectionType.INSIGHTS, description="Section kind")

    @field_validator('title', mode='before')
    @classmethod
    def validate_title(cls, v):
        return sanitize_text(v) or "Section"

    @field_validator('content', mode='before')
    @classmethod
    def validate_content(cls, v):
        return sanitize_text(v) or "Content not available."

    @field_validator('type', mode='before')
    @classmethod
    def validate_type(cls, v):
        if isinstance(v, SectionType):
            return v
        valid = {t.value for t in SectionType}
        return v if isinstance(v, str) and v in valid else SectionType.INSIGHTS


class Newsletter(BaseModel):
    """
    Narrative newsletter generated from aggregated community content.

    Construct with ``Newsletter.from_raw(data, topic)`` when the input comes
    from an external model; missing fields get topic-based defaults.
    """
    title: str
    introduction: str
    sections: List[NewsletterSection] = Field(default_factory=list)
    key_takeaways: List[str] = Field(default_factory=list)
    conclusion: str
    tone: Tone = Field(default=Tone.PROFESSIONAL)

    @field_validator('title', 'introduction', 'conclusion', mode='before')
    @classmethod
    def validate_text(cls, v):
        return sanitize_text(v)

    @field_validator('sections', mode='before')
    @classmethod
    def validate_sections(cls, v):
        if not isinstance(v, list):
            return []
        sections = [s for s in v if isinstance(s, (dict, NewsletterSection))]
        return sections[:MAX_SECTIONS]

    @field_validator('key_takeaways', mode='before')
    @classmethod
    def validate_takeaways(cls, v):
        if not isinstance(v, list):
            return []
        items = [sanitize_text(item) for item in v if isinstance(item, str) and item.strip()]
        return items[:MAX_TAKEAWAYS]

    @field_validator('tone', mode='before')
    @classmethod
    def validate_tone(cls, v):
        if isinstance(v, Tone):
            return v
        valid = {t.value for t in Tone}
        return v if isinstance(v, str) and v in valid else Tone.PROFESSIONAL

    @classmethod
    def from_raw(cls, data: dict, topic: str) -> 'Newsletter':
        """Build from a loosely-shaped dict (camelCase keyTakeaways accepted)."""
        takeaways = data.get('key_takeaways', data.get('keyTakeaways', []))
        return cls(
            title=sanitize_text(data.get('title')) or f"{topic} Weekly Digest",
            introduction=(
                sanitize_text(data.get('introduction'))
                or f"Here's what's happening in the {topic} space this week."
            ),
            sections=data.get('sections') or [],
            key_takeaways=takeaways or [],
            conclusion=(
                sanitize_text(data.get('conclusion'))
                or f"The {topic} landscape continues to evolve rapidly."
            ),
            tone=data.get('tone'),
        )
