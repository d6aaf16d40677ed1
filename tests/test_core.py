"""Tests for newsflow.core.AggregationCache."""

import threading
from typing import Dict, List
from unittest.mock import Mock

import pytest

from conftest import make_article
from newsflow.core import AggregationCache
from newsflow.exceptions import FetchTimeout, NetworkError, NoAccessibleSource, ParseError
from newsflow.fetcher import FeedDocument
from newsflow.models import Enrichment
from newsflow.store import DynamoArticleSource

FEED_A = "https://a.example.com/rss"
FEED_B = "https://b.example.com/rss"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeFeeds:
    """load_feed stand-in that records calls per URL."""

    def __init__(self, docs: Dict[str, object]) -> None:
        self.docs = docs
        self.calls: List[str] = []

    def __call__(self, url: str) -> FeedDocument:
        self.calls.append(url)
        outcome = self.docs[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def entry(title: str, link: str, published: str = "2024-05-01T10:00:00Z", **extra) -> dict:
    return {"title": title, "link": link, "published": published, **extra}


def doc(url: str, *entries: dict, title: str = "Feed") -> FeedDocument:
    return FeedDocument(url=url, title=title, entries=list(entries))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestRefresh:
    def test_scenario_dedup_across_feeds(self, clock) -> None:
        feeds = FakeFeeds({
            FEED_A: doc(
                FEED_A,
                entry("One", "http://x/1"),
                entry("One again", "http://x/1#utm=rss"),
                entry("One comments", "http://x/1#comments"),
            ),
            FEED_B: doc(FEED_B, entry("Two", "http://x/2"), entry("Three", "http://x/3")),
        })
        cache = AggregationCache([FEED_A, FEED_B], clock=clock, load_feed=feeds)

        items = cache.get_articles()

        assert len(items) == 3
        assert {a.url for a in items} == {"http://x/1", "http://x/2", "http://x/3"}

    def test_sorted_newest_first_missing_dates_last(self, clock) -> None:
        feeds = FakeFeeds({
            FEED_A: doc(
                FEED_A,
                entry("Old", "http://x/old", "2024-01-01T00:00:00Z"),
                entry("Undated", "http://x/undated", ""),
                entry("New", "http://x/new", "2024-06-01T00:00:00Z"),
            ),
        })
        cache = AggregationCache([FEED_A], clock=clock, load_feed=feeds)

        items = cache.get_articles()

        assert [a.title for a in items] == ["New", "Old", "Undated"]
        stamps = [a.timestamp for a in items]
        assert stamps == sorted(stamps, reverse=True)

    def test_output_order_independent_of_feed_order(self, clock) -> None:
        docs = {
            FEED_A: doc(FEED_A, entry("A", "http://x/a", "2024-05-01T08:00:00Z")),
            FEED_B: doc(FEED_B, entry("B", "http://x/b", "2024-05-01T09:00:00Z")),
        }
        one = AggregationCache([FEED_A, FEED_B], clock=clock, load_feed=FakeFeeds(docs)).get_articles()
        two = AggregationCache([FEED_B, FEED_A], clock=clock, load_feed=FakeFeeds(docs)).get_articles()
        assert [a.id for a in one] == [a.id for a in two] == ["http://x/b", "http://x/a"]

    def test_failed_feeds_are_skipped(self, clock) -> None:
        feeds = FakeFeeds({
            FEED_A: NetworkError("down"),
            FEED_B: doc(FEED_B, entry("B", "http://x/b")),
            "https://c.example.com/rss": ParseError("garbage"),
            "https://d.example.com/rss": FetchTimeout("slow"),
        })
        cache = AggregationCache(list(feeds.docs), clock=clock, load_feed=feeds)

        items = cache.get_articles()

        assert [a.title for a in items] == ["B"]

    def test_all_feeds_failing_raises(self, clock) -> None:
        feeds = FakeFeeds({FEED_A: NetworkError("down"), FEED_B: ParseError("bad")})
        cache = AggregationCache([FEED_A, FEED_B], clock=clock, load_feed=feeds)

        with pytest.raises(NoAccessibleSource):
            cache.get_articles()

    def test_all_feeds_failing_serves_stale_cache(self, clock) -> None:
        feeds = FakeFeeds({FEED_A: doc(FEED_A, entry("A", "http://x/a"))})
        cache = AggregationCache([FEED_A], clock=clock, load_feed=feeds, ttl=60)
        first = cache.get_articles()

        feeds.docs[FEED_A] = NetworkError("down")
        clock.now += 120

        assert cache.get_articles() is first

    def test_parallel_fetch_matches_sequential(self, clock) -> None:
        docs = {
            FEED_A: doc(FEED_A, entry("A", "http://x/a", "2024-05-01T08:00:00Z")),
            FEED_B: doc(FEED_B, entry("B", "http://x/b", "2024-05-01T09:00:00Z")),
        }
        seq = AggregationCache([FEED_A, FEED_B], clock=clock, load_feed=FakeFeeds(docs)).get_articles()
        par = AggregationCache(
            [FEED_A, FEED_B], clock=clock, load_feed=FakeFeeds(docs), fetch_workers=4
        ).get_articles()
        assert seq == par

    def test_page_image_lookups_run_concurrently(self, clock) -> None:
        started = threading.Barrier(3, timeout=5)

        def page_fetcher(url):
            # only returns once three lookups are in flight at the same time
            started.wait()
            return f'<meta property="og:image" content="{url}.jpg">'.encode()

        feeds = FakeFeeds({
            FEED_A: doc(
                FEED_A,
                entry("One", "http://x/1", "2024-05-01T10:00:00Z"),
                entry("Two", "http://x/2", "2024-05-01T09:00:00Z"),
                entry("Three", "http://x/3", "2024-05-01T08:00:00Z"),
            ),
        })
        cache = AggregationCache(
            [FEED_A], clock=clock, load_feed=feeds, page_fetcher=page_fetcher, fetch_workers=3
        )

        items = cache.get_articles()

        assert [a.image_url for a in items] == ["http://x/1.jpg", "http://x/2.jpg", "http://x/3.jpg"]

    def test_no_feeds_configured(self, clock) -> None:
        assert AggregationCache([], clock=clock, load_feed=FakeFeeds({})).get_articles() == ()


class TestTtl:
    def test_calls_within_ttl_return_same_object(self, clock) -> None:
        feeds = FakeFeeds({FEED_A: doc(FEED_A, entry("A", "http://x/a"))})
        cache = AggregationCache([FEED_A], clock=clock, load_feed=feeds, ttl=300)

        first = cache.get_articles()
        clock.now += 299
        second = cache.get_articles()

        assert second is first
        assert feeds.calls == [FEED_A]

    def test_expiry_refetches_each_feed_once(self, clock) -> None:
        feeds = FakeFeeds({
            FEED_A: doc(FEED_A, entry("A", "http://x/a")),
            FEED_B: doc(FEED_B, entry("B", "http://x/b")),
        })
        cache = AggregationCache([FEED_A, FEED_B], clock=clock, load_feed=feeds, ttl=300)

        cache.get_articles()
        clock.now += 300
        cache.get_articles()

        assert feeds.calls == [FEED_A, FEED_B, FEED_A, FEED_B]

    def test_invalidate_forces_refresh(self, clock) -> None:
        feeds = FakeFeeds({FEED_A: doc(FEED_A, entry("A", "http://x/a"))})
        cache = AggregationCache([FEED_A], clock=clock, load_feed=feeds)

        cache.get_articles()
        cache.invalidate()
        cache.get_articles()

        assert feeds.calls == [FEED_A, FEED_A]

    def test_empty_result_is_not_cached(self, clock) -> None:
        feeds = FakeFeeds({FEED_A: doc(FEED_A)})
        cache = AggregationCache([FEED_A], clock=clock, load_feed=feeds)

        cache.get_articles()
        cache.get_articles()

        assert feeds.calls == [FEED_A, FEED_A]


class TestSecondarySource:
    def test_merged_and_deduplicated(self, clock) -> None:
        feeds = FakeFeeds({FEED_A: doc(FEED_A, entry("A", "http://x/a", "2024-05-01T08:00:00Z"))})
        secondary = Mock()
        secondary.name = "dynamodb:NewsArticles"
        secondary.fetch_articles.return_value = [
            make_article("stored-1", url="http://x/a#dup"),
            make_article("stored-2", url="http://x/s"),
        ]
        cache = AggregationCache([FEED_A], clock=clock, load_feed=feeds, secondary_source=secondary)

        items = cache.get_articles()

        assert {a.url for a in items} == {"http://x/a", "http://x/s"}

    def test_malformed_stored_row_does_not_break_refresh(self, clock) -> None:
        feeds = FakeFeeds({FEED_A: doc(FEED_A, entry("A", "http://x/a"))})
        table = Mock()
        table.name = "NewsArticles"
        table.scan.return_value = {"Items": [
            {"article_id": "odd", "title": 2024, "url": "http://x/odd"},
            {"article_id": "bad", "url": "http://x/bad", "labels": 5},
        ]}
        cache = AggregationCache(
            [FEED_A], clock=clock, load_feed=feeds, secondary_source=DynamoArticleSource(table)
        )

        items = cache.get_articles()

        assert {a.url for a in items} == {"http://x/a", "http://x/odd"}

    def test_counts_as_a_source(self, clock) -> None:
        feeds = FakeFeeds({FEED_A: NetworkError("down")})
        secondary = Mock()
        secondary.name = "dynamodb:NewsArticles"
        secondary.fetch_articles.return_value = [make_article("stored-1")]
        cache = AggregationCache([FEED_A], clock=clock, load_feed=feeds, secondary_source=secondary)

        assert [a.id for a in cache.get_articles()] == ["stored-1"]

        secondary.fetch_articles.side_effect = NetworkError("scan failed")
        fresh = AggregationCache([FEED_A], clock=clock, load_feed=feeds, secondary_source=secondary)
        with pytest.raises(NoAccessibleSource):
            fresh.get_articles()


class TestEnrichment:
    def test_only_newest_are_enriched(self, clock) -> None:
        feeds = FakeFeeds({
            FEED_A: doc(
                FEED_A,
                entry("Old", "http://x/old", "2024-01-01T00:00:00Z", summary="old text"),
                entry("New", "http://x/new", "2024-06-01T00:00:00Z", summary="new text"),
            ),
        })
        summarizer = Mock()
        summarizer.summarize.return_value = Enrichment(summary="short", keywords=("k",))
        cache = AggregationCache(
            [FEED_A], clock=clock, load_feed=feeds, summarizer=summarizer, summarize_limit=1
        )

        new, old = cache.get_articles()

        assert new.summary == "short"
        assert old.summary is None
        summarizer.summarize.assert_called_once()
