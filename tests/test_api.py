"""Tests for the HTTP routes in newsflow.api."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from newsflow.api import create_app
from newsflow.core import AggregationCache
from newsflow.exceptions import NetworkError, StorageError
from newsflow.fetcher import FeedDocument
from newsflow.preferences import PreferenceLearner
from newsflow.service import NewsService
from newsflow.store import InMemoryPreferenceStore, PreferenceStore

FEED_URL = "https://feeds.example.com/rss"

ENTRIES = [
    {
        "title": "Climate summit opens in Paris",
        "link": "https://bbc.example.com/climate",
        "published": "2024-05-01T11:00:00Z",
        "summary": "Leaders gather to discuss emissions.",
    },
    {
        "title": "Cup final goes to penalties",
        "link": "https://sport.example.com/final",
        "published": "2024-05-01T10:00:00Z",
        "tags": [{"term": "Football"}],
    },
    {
        "title": "Quiet day at the museum",
        "link": "https://arts.example.com/museum",
        "published": "2024-05-01T09:00:00Z",
    },
]


def load_feed(url: str) -> FeedDocument:
    return FeedDocument(url=url, title="Example Wire", entries=list(ENTRIES))


def failing_feed(url: str) -> FeedDocument:
    raise NetworkError("connection refused")


def make_client(load=load_feed, store=None) -> TestClient:
    cache = AggregationCache([FEED_URL], load_feed=load)
    learner = PreferenceLearner(store or InMemoryPreferenceStore())
    return TestClient(create_app(NewsService(cache, learner)))


@pytest.fixture
def client() -> TestClient:
    return make_client()


def test_health(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


class TestItems:
    def test_latest_first(self, client) -> None:
        resp = client.get("/items")

        assert resp.status_code == 200
        body = resp.json()
        assert [a["url"] for a in body] == [e["link"] for e in ENTRIES]
        first = body[0]
        assert first["id"] == "https://bbc.example.com/climate"
        assert first["source"] == "Example Wire"
        assert first["description"] == "Leaders gather to discuss emissions."
        assert first["publishedAt"].startswith("2024-05-01T11:00:00")
        assert "imageUrl" in first and "category" in first and "region" in first

    def test_limit_and_seen(self, client) -> None:
        resp = client.get(
            "/items",
            params={"limit": 1, "seen": "https://bbc.example.com/climate, "},
        )
        assert [a["url"] for a in resp.json()] == ["https://sport.example.com/final"]

    def test_personalized(self, client) -> None:
        client.put("/user/u1", json={"customizationLevel": 100})
        client.post("/user/u1/activity", json={
            "articleId": "https://sport.example.com/final",
            "action": "liked",
            "articleData": {"category": "Sports", "source": "Elsewhere"},
        })

        resp = client.get("/items", params={"userId": "u1", "limit": 3})

        assert [a["url"] for a in resp.json()] == ["https://sport.example.com/final"]

    def test_invalid_limit(self, client) -> None:
        assert client.get("/items", params={"limit": 0}).status_code == 422

    def test_no_sources(self) -> None:
        resp = make_client(load=failing_feed).get("/items")
        assert resp.status_code == 503


class TestSearch:
    def test_match(self, client) -> None:
        resp = client.get("/search", params={"q": "climate paris"})
        assert [a["url"] for a in resp.json()] == ["https://bbc.example.com/climate"]

    def test_empty_query(self, client) -> None:
        assert client.get("/search").json() == []
        assert client.get("/search", params={"q": "  "}).json() == []


class TestUser:
    def test_defaults(self, client) -> None:
        body = client.get("/user/new-user").json()
        assert body["user_id"] == "new-user"
        assert body["customizationLevel"] == 50
        assert body["preferredSources"] == {}
        assert body["activities"] == []

    def test_put_preferences(self, client) -> None:
        resp = client.put("/user/u1", json={"customizationLevel": 75, "updatedAt": "2024-05-01T00:00:00Z"})

        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        body = client.get("/user/u1").json()
        assert body["customizationLevel"] == 75
        assert body["updatedAt"] == "2024-05-01T00:00:00Z"

    @pytest.mark.parametrize("payload", [{"customizationLevel": 101}, {"customizationLevel": -1}, {}])
    def test_put_invalid(self, client, payload) -> None:
        assert client.put("/user/u1", json=payload).status_code == 422

    def test_activity(self, client) -> None:
        resp = client.post("/user/u1/activity", json={
            "articleId": "a1",
            "action": "liked",
            "timestamp": 1714557600000,
            "articleData": {"category": "Politics", "source": "BBC", "region": "Europe"},
        })

        assert resp.json() == {"success": True}
        body = client.get("/user/u1").json()
        assert body["preferredSources"] == {"BBC": 1}
        assert body["preferredCategories"] == {"Politics": 1}
        assert body["preferredLabels"] == {"Europe": 1}
        assert body["activities"][0]["articleId"] == "a1"
        assert body["activities"][0]["timestamp"] == 1714557600000

    def test_activity_without_timestamp(self, client) -> None:
        client.post("/user/u1/activity", json={"articleId": "a1", "action": "viewed"})
        activity = client.get("/user/u1").json()["activities"][0]
        assert activity["timestamp"]

    def test_unknown_action(self, client) -> None:
        resp = client.post("/user/u1/activity", json={"articleId": "a1", "action": "bookmarked"})
        assert resp.status_code == 422

    def test_store_write_failure(self) -> None:
        store = Mock(spec=PreferenceStore)
        store.get.return_value = None
        store.with_user_record.side_effect = StorageError("throttled")
        client = make_client(store=store)

        resp = client.post("/user/u1/activity", json={"articleId": "a1", "action": "viewed"})

        assert resp.status_code == 503


def test_value_error_is_bad_request() -> None:
    service = Mock(spec=NewsService)
    service.set_preferences.side_effect = ValueError("bad level")
    client = TestClient(create_app(service))

    resp = client.put("/user/u1", json={"customizationLevel": 10})

    assert resp.status_code == 400
    assert resp.json() == {"error": "bad level"}
