from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .config import Settings
from .core import AggregationCache
from .fetcher import fetch_feed
from .images import default_page_fetcher
from .models import ArticleMetadata, Article, UserPreferenceState
from .preferences import PreferenceLearner
from .ranking import latest_articles, search_articles, select_articles
from .store import DynamoArticleSource, DynamoPreferenceStore, InMemoryPreferenceStore, PreferenceStore
from .summarizers import build_summarizer

logger = logging.getLogger(__name__)


class NewsService:
    """The operations clients call: feed, search, activity, preferences."""

    def __init__(self, cache: AggregationCache, learner: PreferenceLearner) -> None:
        self.cache = cache
        self.learner = learner

    def get_articles(
        self,
        limit: int = 10,
        seen_ids: Iterable[str] = (),
        user_id: Optional[str] = None,
    ) -> List[Article]:
        articles = self.cache.get_articles()
        seen = frozenset(seen_ids)
        if not user_id:
            return latest_articles(articles, seen, limit)
        prefs = self.learner.get_preferences(user_id)
        return select_articles(articles, prefs, prefs.customization_level, seen, limit)

    def search(self, query: str, limit: int = 20) -> List[Article]:
        if not (query or "").strip():
            return []
        return search_articles(self.cache.get_articles(), query, limit)

    def record_activity(
        self,
        user_id: str,
        article_id: str,
        action: str,
        timestamp: Any,
        metadata: Optional[ArticleMetadata] = None,
    ) -> UserPreferenceState:
        return self.learner.record_activity(user_id, article_id, action, timestamp, metadata)

    def set_preferences(
        self,
        user_id: str,
        customization_level: int,
        updated_at: Optional[str] = None,
    ) -> UserPreferenceState:
        return self.learner.set_customization_level(user_id, customization_level, updated_at)

    def get_user(self, user_id: str) -> Dict[str, Any]:
        return self.learner.get_preferences(user_id).to_record()


def build_preference_store(settings: Settings) -> PreferenceStore:
    if settings.preference_store == "dynamodb":
        return DynamoPreferenceStore.connect(
            table_name=settings.user_table,
            region=settings.aws_region,
            endpoint_url=settings.dynamodb_endpoint_url,
        )
    if settings.preference_store != "memory":
        raise ValueError(f"Unknown preference store: {settings.preference_store!r}")
    return InMemoryPreferenceStore()


def build_service(settings: Settings) -> NewsService:
    """Wire the object graph once at process start."""
    secondary = None
    if settings.secondary_source.enabled:
        secondary = DynamoArticleSource.connect(
            table_name=settings.secondary_source.table,
            region=settings.aws_region,
            endpoint_url=settings.secondary_source.endpoint,
        )

    summarizer = build_summarizer(settings.summarize_options) if settings.summarize else None

    cache = AggregationCache(
        settings.feeds,
        ttl=settings.cache_ttl_seconds,
        load_feed=lambda url: fetch_feed(url, timeout=settings.feed_timeout),
        page_fetcher=default_page_fetcher(settings.page_timeout) if settings.page_image_fallback else None,
        fetch_workers=settings.fetch_workers,
        secondary_source=secondary,
        summarizer=summarizer,
        summarize_options=settings.summarize_options,
        summarize_limit=settings.summarize_limit,
    )
    logger.info(
        "Configured %d feeds, %s preference store, secondary source %s",
        len(settings.feeds),
        settings.preference_store,
        "on" if secondary else "off",
    )
    return NewsService(cache, PreferenceLearner(build_preference_store(settings)))
