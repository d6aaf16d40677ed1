"""Runtime configuration, read once at startup and passed down explicitly."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from .summarizers import SummarizeOptions

DEFAULT_FEEDS = [
    "https://feeds.bbci.co.uk/news/rss.xml",
    "https://rss.nytimes.com/services/xml/rss/nyt/World.xml",
    "https://www.npr.org/rss/rss.php?id=1001",
    "https://www.theverge.com/rss/index.xml",
]


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class SecondarySourceConfig:
    """Optional pre-populated article table merged into every refresh."""
    enabled: bool = False
    endpoint: Optional[str] = None
    table: str = "NewsArticles"


@dataclass
class Settings:
    feeds: List[str] = field(default_factory=lambda: list(DEFAULT_FEEDS))
    cache_ttl_seconds: float = 300.0
    feed_timeout: float = 10.0
    page_timeout: float = 3.5
    page_image_fallback: bool = True
    fetch_workers: int = 1

    preference_store: str = "memory"  # "memory" | "dynamodb"
    aws_region: str = "ap-southeast-2"
    user_table: str = "UserData"
    dynamodb_endpoint_url: Optional[str] = None

    secondary_source: SecondarySourceConfig = field(default_factory=SecondarySourceConfig)

    summarize: bool = False
    summarize_options: SummarizeOptions = field(default_factory=SummarizeOptions)
    summarize_limit: int = 20

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        """Build settings from the environment (and a .env file when present)."""
        if dotenv:
            load_dotenv()
        provider = os.getenv("NEWSFLOW_SUMMARY_PROVIDER", "openai").lower()
        if provider == "openai":
            api_key = os.getenv("OPENAI_API_KEY")
        else:
            api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
        return cls(
            feeds=_list("NEWSFLOW_FEEDS", DEFAULT_FEEDS),
            cache_ttl_seconds=float(os.getenv("NEWSFLOW_CACHE_TTL", "300")),
            feed_timeout=float(os.getenv("NEWSFLOW_FEED_TIMEOUT", "10")),
            page_timeout=float(os.getenv("NEWSFLOW_PAGE_TIMEOUT", "3.5")),
            page_image_fallback=_flag("NEWSFLOW_PAGE_IMAGES", True),
            fetch_workers=int(os.getenv("NEWSFLOW_FETCH_WORKERS", "1")),
            preference_store=os.getenv("NEWSFLOW_PREFERENCE_STORE", "memory").lower(),
            aws_region=os.getenv("AWS_REGION", "ap-southeast-2"),
            user_table=os.getenv("NEWSFLOW_USER_TABLE", "UserData"),
            dynamodb_endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL") or None,
            secondary_source=SecondarySourceConfig(
                enabled=_flag("NEWSFLOW_SECONDARY_ENABLED", False),
                endpoint=os.getenv("NEWSFLOW_SECONDARY_ENDPOINT") or None,
                table=os.getenv("NEWSFLOW_SECONDARY_TABLE", "NewsArticles"),
            ),
            summarize=_flag("NEWSFLOW_SUMMARIZE", False),
            summarize_options=SummarizeOptions(
                provider=provider,
                model=os.getenv("NEWSFLOW_SUMMARY_MODEL") or None,
                api_key=api_key,
            ),
            summarize_limit=int(os.getenv("NEWSFLOW_SUMMARIZE_LIMIT", "20")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
