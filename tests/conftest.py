from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import Mock

import pytest

from newsflow.models import Article

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_article(
    article_id: str,
    *,
    source: str = "Example News",
    category: str = "Other",
    region: str = "Global",
    hours_ago: Optional[float] = 0,
    url: Optional[str] = None,
    title: Optional[str] = None,
    description: str = "",
) -> Article:
    return Article(
        id=article_id,
        title=title or f"Story {article_id}",
        url=url if url is not None else f"https://example.com/{article_id}",
        source=source,
        description=description,
        published_at=None if hours_ago is None else BASE_TIME - timedelta(hours=hours_ago),
        category=category,
        region=region,
    )


def fake_response(status: int = 200, body: bytes = b"", headers: Optional[dict] = None) -> Mock:
    resp = Mock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.iter_content.return_value = [body] if body else []
    return resp


def rss(*items: str, title: str = "Example Feed") -> bytes:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/" '
        'xmlns:content="http://purl.org/rss/1.0/modules/content/">'
        f"<channel><title>{title}</title><link>https://example.com/</link>"
        + "".join(items)
        + "</channel></rss>"
    ).encode("utf-8")


def rss_item(
    title: str,
    link: str,
    *,
    guid: Optional[str] = None,
    description: str = "",
    pub_date: str = "Wed, 01 May 2024 10:00:00 GMT",
    extra: str = "",
) -> str:
    guid_xml = f"<guid>{guid}</guid>" if guid else ""
    return (
        f"<item><title>{title}</title><link>{link}</link>{guid_xml}"
        f"<description><![CDATA[{description}]]></description>"
        f"<pubDate>{pub_date}</pubDate>{extra}</item>"
    )


@pytest.fixture
def article_factory():
    return make_article
