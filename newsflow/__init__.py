"""
newsflow

Aggregates RSS/Atom feeds into one deduplicated article pool and serves it as a
personalized feed that learns from what each user likes.

Core ideas:
- Input: RSS/Atom feed URLs
- Process: fetch → normalize (infer category, region, image) → deduplicate → sort (newest first) → cache
- Output: List[Article], ranked per user from preference counters learned on "liked" activity

Example
-------
from newsflow import AggregationCache, InMemoryPreferenceStore, NewsService, PreferenceLearner

cache = AggregationCache([
    "https://feeds.bbci.co.uk/news/rss.xml",
    "https://www.theverge.com/rss/index.xml",
])
news = NewsService(cache, PreferenceLearner(InMemoryPreferenceStore()))

for article in news.get_articles(limit=5, user_id="u1"):
    print(article.published_at, article.source, article.category, article.title)
"""
from .models import Article, ArticleMetadata, UserPreferenceState
from .core import AggregationCache
from .preferences import PreferenceLearner
from .service import NewsService, build_service
from .store import DynamoPreferenceStore, InMemoryPreferenceStore
from .config import SecondarySourceConfig, Settings

__all__ = [
    "Article",
    "ArticleMetadata",
    "UserPreferenceState",
    "AggregationCache",
    "PreferenceLearner",
    "NewsService",
    "build_service",
    "DynamoPreferenceStore",
    "InMemoryPreferenceStore",
    "SecondarySourceConfig",
    "Settings",
]
