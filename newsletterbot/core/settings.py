"""Application settings and configuration."""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO")
    environment: str = Field(default="development")

    # Service configuration
    app_name: str = "NewsletterBot"
    service_host: str = Field(default="0.0.0.0")
    service_port: Optional[int] = Field(default=8002)
    debug: bool = Field(default=False)

    # Reddit (content source)
    reddit_base_url: str = Field(default="https://www.reddit.com")
    reddit_user_agent: str = Field(
        default="NewsletterBot/1.0 (topic newsletter aggregator; +https://newsletterbot.app/bot)"
    )
    reddit_timeout_seconds: float = Field(default=10.0, gt=0, le=30)
    reddit_cache_ttl_seconds: float = Field(default=3 * 3600, gt=0)

    # Aggregation pacing and limits
    max_communities: int = Field(default=4, ge=1)
    posts_per_community: int = Field(default=10, ge=1, le=100)
    analysis_posts_per_community: int = Field(default=15, ge=1, le=100)
    reply_threads_per_community: int = Field(default=5, ge=0)
    community_delay_seconds: float = Field(default=1.0, ge=0)
    item_delay_seconds: float = Field(default=0.5, ge=0)
    top_posts_limit: int = Field(default=15, ge=1)
    top_comments_limit: int = Field(default=10, ge=1)
    min_comment_score: int = Field(default=5)
    related_topics_limit: int = Field(default=5, ge=1)

    # Data files
    topics_config_path: Path = Field(default=CONFIG_DIR / "topics.yaml")
    vocabulary_config_path: Path = Field(default=CONFIG_DIR / "vocabulary.yaml")

    # Narrative generation (LLM)
    narrative_provider: str = Field(default="dummy")
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4o-mini")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_timeout_seconds: float = Field(default=60.0, gt=0)
    llm_monthly_budget: int = Field(default=100, ge=0)

    # Request handling
    request_budget_seconds: float = Field(default=120.0, gt=0)
    allow_cache_admin: bool = Field(default=False)


@lru_cache()
def get_settings() -> Settings:
    """Get settings singleton."""
    return Settings()
