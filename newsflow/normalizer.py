from __future__ import annotations

import re
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from .classifier import infer_category, infer_region
from .fetcher import host_of
from .images import PageFetcher, resolve_image
from .models import Article
from .parser import parse_entry

UNTITLED = "(untitled)"

_WS = re.compile(r"\s+")


def strip_html(text: str) -> str:
    """Plain text of an HTML fragment with whitespace collapsed."""
    if not text:
        return ""
    if "<" in text or "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    return _WS.sub(" ", text).strip()


def _description(fields: Dict[str, Any]) -> str:
    for key in ("snippet", "summary", "encoded", "content"):
        text = strip_html(fields.get(key) or "")
        if text:
            return text
    return ""


def _source(source_title: Optional[str], link: Optional[str], feed_url: str) -> str:
    if source_title and source_title.strip():
        return source_title.strip()
    return host_of(link) or host_of(feed_url) or "unknown"


def normalize_entry(
    entry: Dict[str, Any],
    source_title: Optional[str],
    feed_url: str,
    page_fetcher: Optional[PageFetcher] = None,
) -> Article:
    """
    Convert a raw feed entry (from feedparser) into an Article.

    - id: guid -> link -> "<feed_url>#<title>"
    - description: snippet -> summary -> encoded content -> raw content, HTML stripped
    - image, category and region are inferred when the feed does not provide them

    Pure unless `page_fetcher` is given, in which case an entry with no image
    in the feed may trigger one page fetch.
    """
    fields = parse_entry(entry)
    title = fields["title"] or UNTITLED
    link = fields["link"] or None
    description = _description(fields)

    article_id = fields["guid"] or link or f"{feed_url}#{fields['title'] or 'untitled'}"

    category = infer_category(
        categories=fields["categories"],
        title=fields["title"],
        snippet=fields["snippet"] or fields["summary"],
        feed_title=source_title,
        link=link,
        feed_url=feed_url,
    )
    region = infer_region(fields["title"], description)

    return Article(
        id=article_id,
        title=title,
        url=link,
        source=_source(source_title, link, feed_url),
        description=description,
        image_url=resolve_image(fields, feed_url, page_fetcher),
        published_at=fields["published_at"],
        category=category,
        region=region,
    )
