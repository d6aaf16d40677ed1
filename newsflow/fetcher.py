from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import feedparser
import requests

from .exceptions import FetchTimeout, NetworkError, ParseError, TooManyRedirects

logger = logging.getLogger(__name__)

FEED_TIMEOUT = 10.0
PAGE_TIMEOUT = 3.5
MAX_REDIRECTS = 3
MAX_BYTES = 5 * 1024 * 1024
_CHUNK_SIZE = 16 * 1024

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "application/rss+xml, application/atom+xml, application/xml;q=0.9, "
        "text/html;q=0.8, */*;q=0.7"
    ),
}


@dataclass
class FetchResponse:
    url: str
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status < 400


@dataclass
class FeedDocument:
    url: str
    title: Optional[str]
    entries: List[Dict[str, Any]]


def fetch_url(
    url: str,
    *,
    timeout: float = FEED_TIMEOUT,
    max_bytes: int = MAX_BYTES,
    session: Any = None,
) -> FetchResponse:
    """
    GET `url`, following up to MAX_REDIRECTS redirects by hand.

    `timeout` is one budget for the whole call, redirects included. When it
    runs out the open response is closed and FetchTimeout is raised. Bodies
    longer than `max_bytes` are cut at the limit.
    """
    http = session or requests
    deadline = time.monotonic() + timeout
    current = url
    hops = 0

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FetchTimeout(f"Timed out fetching {url}")
        try:
            resp = http.get(
                current,
                headers=DEFAULT_HEADERS,
                timeout=remaining,
                allow_redirects=False,
                stream=True,
            )
        except requests.Timeout as e:
            raise FetchTimeout(f"Timed out fetching {current} ({e})") from e
        except requests.RequestException as e:
            raise NetworkError(f"Failed to fetch {current} ({e})") from e

        try:
            location = resp.headers.get("Location")
            if 300 <= resp.status_code < 400 and location:
                hops += 1
                if hops > MAX_REDIRECTS:
                    raise TooManyRedirects(f"More than {MAX_REDIRECTS} redirects fetching {url}")
                current = urljoin(current, location)
                continue

            chunks = []
            size = 0
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                if time.monotonic() > deadline:
                    raise FetchTimeout(f"Timed out reading {current}")
                if not chunk:
                    continue
                chunks.append(chunk)
                size += len(chunk)
                if size >= max_bytes:
                    break
            body = b"".join(chunks)[:max_bytes]
            return FetchResponse(
                url=current,
                status=resp.status_code,
                body=body,
                headers=dict(resp.headers),
            )
        except requests.Timeout as e:
            raise FetchTimeout(f"Timed out reading {current} ({e})") from e
        except requests.RequestException as e:
            raise NetworkError(f"Failed to read {current} ({e})") from e
        finally:
            resp.close()


def fetch_feed(url: str, *, timeout: float = FEED_TIMEOUT, session: Any = None) -> FeedDocument:
    """
    Fetch a single feed URL and parse it with feedparser.

    Raises NetworkError for transport failures and HTTP errors, ParseError when
    the document is malformed and yields no entries.
    """
    resp = fetch_url(url, timeout=timeout, session=session)
    if not resp.ok:
        raise NetworkError(f"HTTP {resp.status} fetching feed: {url}")

    feed = feedparser.parse(resp.body, response_headers=resp.headers)
    entries = getattr(feed, "entries", None)
    if not isinstance(entries, list):
        raise ParseError(f"Feed has no entries: {url}")
    if getattr(feed, "bozo", 0) and not entries:
        # bozo_exception may exist; include a short message for diagnostics
        exc = getattr(feed, "bozo_exception", None)
        msg = f"Invalid RSS/Atom feed: {url}"
        if exc:
            msg += f" ({exc})"
        raise ParseError(msg)
    if getattr(feed, "bozo", 0):
        logger.debug("Feed %s is malformed but yielded %d entries", url, len(entries))

    meta = getattr(feed, "feed", None) or {}
    title = meta.get("title") if isinstance(meta, dict) else None
    if isinstance(title, str):
        title = title.strip() or None
    else:
        title = None
    return FeedDocument(url=url, title=title, entries=entries)


def host_of(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host or None
