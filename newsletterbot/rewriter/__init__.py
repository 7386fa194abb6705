"""
NewsletterBot Narrative Module

Turns aggregated community content into readable newsletters.

Main Components:
- models: Pydantic models for generated newsletters
- llm_provider: Narrative provider abstraction with an offline default
- template_renderer: Markdown rendering of results and narratives
"""

from .models import Newsletter, NewsletterFormat, NewsletterSection, SectionType, Tone
from .llm_provider import (
    DummyNarrativeProvider,
    NarrativeProvider,
    NarrativeProviderFactory,
    OpenAINarrativeProvider,
    prepare_content,
)
from .template_renderer import TemplateRenderer, render_topic_markdown

__all__ = [
    # Models
    "Newsletter",
    "NewsletterFormat",
    "NewsletterSection",
    "SectionType",
    "Tone",

    # Providers
    "NarrativeProvider",
    "DummyNarrativeProvider",
    "OpenAINarrativeProvider",
    "NarrativeProviderFactory",
    "prepare_content",

    # Rendering
    "TemplateRenderer",
    "render_topic_markdown",
]
