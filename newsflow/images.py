"""Representative image lookup for a parsed feed entry."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .exceptions import NetworkError
from .fetcher import PAGE_TIMEOUT, fetch_url

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str], Optional[bytes]]

_IMG_ATTRS = ("src", "data-src", "data-original")
_META_KEYS = (
    ("property", "og:image"),
    ("name", "og:image"),
    ("name", "twitter:image"),
    ("property", "twitter:image"),
    ("name", "twitter:image:src"),
)


def absolute_url(url: Optional[str], base: Optional[str]) -> Optional[str]:
    """Resolve `url` against `base`; malformed or non-http(s) results become None."""
    if not url or not isinstance(url, str):
        return None
    url = url.strip()
    if not url or url.startswith("data:"):
        return None
    try:
        resolved = urljoin(base or "", url)
        parsed = urlparse(resolved)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return resolved


def _width(m: Dict[str, Any]) -> int:
    try:
        return int(m.get("width") or 0)
    except (TypeError, ValueError):
        return 0


def _from_enclosures(enclosures: Iterable[Dict[str, str]]) -> Optional[str]:
    for enc in enclosures:
        ctype = enc.get("type") or ""
        if ctype and not ctype.startswith("image"):
            continue
        if enc.get("url"):
            return enc["url"]
    return None


def _from_media_content(media: List[Dict[str, Any]]) -> Optional[str]:
    for m in media:
        url = m.get("url")
        if url:
            return url
    return None


def _from_thumbnails(thumbs: List[Dict[str, Any]]) -> Optional[str]:
    candidates = [t for t in thumbs if t.get("url")]
    if not candidates:
        return None
    # max() keeps the first of equally wide thumbnails
    return max(candidates, key=_width)["url"]


def first_img_src(html: str) -> Optional[str]:
    """First usable image reference in an HTML fragment."""
    if not html or "<img" not in html.lower():
        return None
    soup = BeautifulSoup(html, "html.parser")
    for img in soup.find_all("img"):
        for attr in _IMG_ATTRS:
            val = img.get(attr)
            if isinstance(val, str) and val.strip():
                return val.strip()
        srcset = img.get("srcset")
        if isinstance(srcset, str) and srcset.strip():
            first = srcset.split(",")[0].strip().split()
            if first:
                return first[0]
    return None


def meta_image(html: bytes) -> Optional[str]:
    """Open Graph or Twitter card image declared in a page head."""
    soup = BeautifulSoup(html, "html.parser")
    for attr, key in _META_KEYS:
        tag = soup.find("meta", attrs={attr: key})
        if tag is None:
            continue
        content = tag.get("content")
        if isinstance(content, str) and content.strip():
            return content.strip()
    return None


def default_page_fetcher(timeout: float = PAGE_TIMEOUT, session: Any = None) -> PageFetcher:
    """Page fetcher used for the meta-tag fallback; HTTP errors count as no page."""

    def fetch(url: str) -> Optional[bytes]:
        resp = fetch_url(url, timeout=timeout, session=session)
        if not resp.ok:
            return None
        return resp.body

    return fetch


def find_page_image(page_url: str, page_fetcher: PageFetcher) -> Optional[str]:
    """Look up og:image / twitter:image on the article page. Never raises for fetch errors."""
    try:
        body = page_fetcher(page_url)
    except NetworkError as e:
        logger.debug("Page image lookup failed for %s: %s", page_url, e)
        return None
    if not body:
        return None
    try:
        found = meta_image(body)
    except (ValueError, TypeError) as e:
        logger.debug("Could not parse page %s: %s", page_url, e)
        return None
    return absolute_url(found, page_url)


def resolve_image(
    entry: Dict[str, Any],
    feed_url: str,
    page_fetcher: Optional[PageFetcher] = None,
) -> Optional[str]:
    """
    Resolve an entry's image. First hit wins:
    enclosure -> media:content -> widest media:thumbnail -> <img> in encoded
    then raw content -> og:image/twitter:image on the article page.
    """
    candidates = (
        lambda: _from_enclosures(entry.get("enclosures") or []),
        lambda: _from_media_content(entry.get("media_content") or []),
        lambda: _from_thumbnails(entry.get("media_thumbnail") or []),
        lambda: first_img_src(entry.get("encoded") or ""),
        lambda: first_img_src(entry.get("content") or ""),
    )
    for pick in candidates:
        resolved = absolute_url(pick(), feed_url)
        if resolved:
            return resolved

    link = entry.get("link")
    if link and page_fetcher is not None:
        return find_page_image(link, page_fetcher)
    return None
