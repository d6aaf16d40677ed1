from __future__ import annotations

import concurrent.futures as _fut
import logging
import time
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from .dedup import deduplicate, sort_by_recency
from .exceptions import FeedError, NoAccessibleSource
from .fetcher import FEED_TIMEOUT, FeedDocument, fetch_feed
from .images import PageFetcher
from .models import Article
from .normalizer import normalize_entry
from .summarizers import SummarizeOptions, Summarizer, enrich_articles

logger = logging.getLogger(__name__)

DEFAULT_TTL = 5 * 60.0

FeedLoader = Callable[[str], FeedDocument]


class ArticleSource(Protocol):
    name: str

    def fetch_articles(self) -> List[Article]:  # pragma: no cover - interface
        ...


class AggregationCache:
    """
    Process-wide cache of normalized articles from every configured feed.

    Pipeline on refresh: fetch → normalize → (merge secondary source) →
    deduplicate by canonical URL → sort (newest first) → optional enrichment.

    Construct once at startup and hand the instance to whatever serves
    requests. Overlapping refreshes are not serialized; each one simply
    redoes the network work and the last to finish wins.
    """

    def __init__(
        self,
        feeds: Sequence[str],
        *,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        load_feed: Optional[FeedLoader] = None,
        page_fetcher: Optional[PageFetcher] = None,
        fetch_workers: int = 1,
        secondary_source: Optional[ArticleSource] = None,
        summarizer: Optional[Summarizer] = None,
        summarize_options: Optional[SummarizeOptions] = None,
        summarize_limit: int = 20,
    ) -> None:
        self.feeds = list(feeds)
        self.ttl = ttl
        self.clock = clock
        self.load_feed = load_feed or (lambda url: fetch_feed(url, timeout=FEED_TIMEOUT))
        self.page_fetcher = page_fetcher
        self.fetch_workers = max(1, int(fetch_workers or 1))
        self.secondary_source = secondary_source
        self.summarizer = summarizer
        self.summarize_options = summarize_options
        self.summarize_limit = summarize_limit

        self.items: Tuple[Article, ...] = ()
        self.last_fetched: Optional[float] = None

    def is_fresh(self) -> bool:
        if not self.items or self.last_fetched is None:
            return False
        return self.clock() - self.last_fetched < self.ttl

    def get_articles(self) -> Tuple[Article, ...]:
        """Cached articles, refreshing when the cache is empty or older than the TTL."""
        if self.is_fresh():
            return self.items
        return self.refresh()

    def invalidate(self) -> None:
        self.last_fetched = None

    def refresh(self) -> Tuple[Article, ...]:
        """
        Rebuild the cache from every source.

        Individual sources that fail are logged and skipped. Raises
        NoAccessibleSource when all of them fail and nothing was cached before;
        with an older result on hand, that result is served instead.
        """
        now = self.clock()
        attempted = 0
        failed = 0
        collected: List[Article] = []

        for url, outcome in self._load_all():
            attempted += 1
            if isinstance(outcome, FeedError):
                failed += 1
                logger.warning("RSS error: %s (%s)", url, outcome)
                continue
            collected.extend(self._normalize_feed(outcome))

        if self.secondary_source is not None:
            attempted += 1
            try:
                collected.extend(self.secondary_source.fetch_articles())
            except FeedError as e:
                failed += 1
                logger.warning("Secondary source error: %s (%s)", self.secondary_source.name, e)

        if attempted and failed == attempted:
            if self.items:
                logger.warning("All %d sources failed; serving %d cached articles", attempted, len(self.items))
                return self.items
            raise NoAccessibleSource(f"All {attempted} configured sources failed")

        items = sort_by_recency(deduplicate(collected))
        items = self._enrich(items)

        self.items = tuple(items)
        self.last_fetched = now
        logger.info(
            "Refreshed %d articles from %d/%d sources", len(self.items), attempted - failed, attempted
        )
        return self.items

    def _load_one(self, url: str) -> Any:
        try:
            return self.load_feed(url)
        except FeedError as e:
            return e

    def _load_all(self) -> List[Tuple[str, Any]]:
        """(url, FeedDocument | FeedError) in configured feed order."""
        if self.fetch_workers == 1 or len(self.feeds) <= 1:
            return [(url, self._load_one(url)) for url in self.feeds]
        with _fut.ThreadPoolExecutor(max_workers=self.fetch_workers) as ex:
            return list(zip(self.feeds, ex.map(self._load_one, self.feeds)))

    def _normalize_one(self, doc: FeedDocument, entry: Any) -> Optional[Article]:
        try:
            return normalize_entry(entry, doc.title, doc.url, self.page_fetcher)
        except (ValueError, TypeError, AttributeError) as e:
            # Skip malformed rows
            logger.warning("Skipping malformed entry from %s: %s", doc.url, e)
            return None

    def _normalize_feed(self, doc: FeedDocument) -> List[Article]:
        entries = list(doc.entries)
        # Page image lookups block on the network; spread them over the pool
        if self.page_fetcher is None or self.fetch_workers == 1 or len(entries) <= 1:
            results = [self._normalize_one(doc, entry) for entry in entries]
        else:
            with _fut.ThreadPoolExecutor(max_workers=self.fetch_workers) as ex:
                results = list(ex.map(lambda entry: self._normalize_one(doc, entry), entries))
        return [a for a in results if a is not None]

    def _enrich(self, items: List[Article]) -> List[Article]:
        if self.summarizer is None or self.summarize_limit <= 0:
            return items
        head = enrich_articles(
            items[: self.summarize_limit], self.summarizer, options=self.summarize_options
        )
        return head + items[self.summarize_limit:]
