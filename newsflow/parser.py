from __future__ import annotations

import calendar
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from dateutil.parser import parse as parse_date

# Timezone abbreviations for date parsing
TZINFOS = {
    "EST": timezone(timedelta(hours=-5)),
    "EDT": timezone(timedelta(hours=-4)),
    "CST": timezone(timedelta(hours=-6)),
    "CDT": timezone(timedelta(hours=-5)),
    "MST": timezone(timedelta(hours=-7)),
    "MDT": timezone(timedelta(hours=-6)),
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
    "GMT": timezone.utc,
    "UTC": timezone.utc,
    "BST": timezone(timedelta(hours=1)),
}

_HTML_TYPES = ("text/html", "application/xhtml+xml", "html", "xhtml")


def _to_datetime(entry: Dict[str, Any]) -> Optional[datetime]:
    """
    Convert feed entry date fields to timezone-aware UTC datetime.
    Priority: published_parsed -> updated_parsed -> created_parsed -> raw strings -> None.
    """
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        val = entry.get(key)
        if isinstance(val, time.struct_time):
            try:
                return datetime.fromtimestamp(calendar.timegm(val), tz=timezone.utc)
            except (OverflowError, ValueError, OSError):
                continue
    for key in ("published", "updated", "created", "isoDate", "pubDate"):
        s = entry.get(key)
        if isinstance(s, str) and s.strip():
            try:
                dt = parse_date(s, tzinfos=TZINFOS)
            except (ValueError, OverflowError):
                continue
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt
    return None


def _text(val: Any) -> str:
    return val.strip() if isinstance(val, str) else ""


def _is_html(detail: Any) -> bool:
    if not isinstance(detail, dict):
        return False
    ctype = (detail.get("type") or "").lower()
    return any(t in ctype for t in _HTML_TYPES)


def _split_content(entry: Dict[str, Any]) -> Dict[str, str]:
    """Pick encoded (HTML) content and raw content from feedparser's content list."""
    encoded = ""
    raw = ""
    content = entry.get("content")
    if isinstance(content, list):
        for c in content:
            if not isinstance(c, dict):
                continue
            value = _text(c.get("value"))
            if not value:
                continue
            if _is_html(c):
                encoded = encoded or value
            else:
                raw = raw or value
    # Some dialects surface content:encoded directly
    encoded = encoded or _text(entry.get("content_encoded"))
    if not raw and isinstance(entry.get("content"), str):
        raw = _text(entry.get("content"))
    return {"encoded": encoded, "raw": raw}


def _media_list(entry: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    val = entry.get(key)
    if isinstance(val, dict):
        val = [val]
    if not isinstance(val, list):
        return []
    return [m for m in val if isinstance(m, dict)]


def _enclosures(entry: Dict[str, Any]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for enc in _media_list(entry, "enclosures"):
        href = _text(enc.get("href") or enc.get("url"))
        if href:
            out.append({"url": href, "type": _text(enc.get("type")).lower()})
    # Atom feeds carry enclosures as rel="enclosure" links
    for link in _media_list(entry, "links"):
        if link.get("rel") == "enclosure":
            href = _text(link.get("href"))
            if href and all(e["url"] != href for e in out):
                out.append({"url": href, "type": _text(link.get("type")).lower()})
    return out


def _categories(entry: Dict[str, Any]) -> List[str]:
    out: List[str] = []
    tags = entry.get("tags")
    if isinstance(tags, list):
        for t in tags:
            if isinstance(t, dict):
                term = _text(t.get("term")) or _text(t.get("label"))
                if term:
                    out.append(term)
    cats = entry.get("categories")
    if isinstance(cats, list):
        for c in cats:
            if isinstance(c, str) and c.strip():
                out.append(c.strip())
    return out


def parse_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a raw feed entry (from feedparser) to a dict of the fields normalization needs.

    Fields: guid, title, link, snippet, summary, encoded, content, categories,
    enclosures, media_content, media_thumbnail, published_at (datetime|None)
    """
    title = _text(entry.get("title"))
    link = _text(entry.get("link")) or _text(entry.get("feedburner_origlink"))

    # Prefer entry id/guid if present
    guid = None
    for k in ("id", "guid"):
        v = entry.get(k)
        if isinstance(v, str) and v.strip():
            guid = v.strip()
            break

    # feedparser folds <description> into summary; only plain-text summaries count as a snippet
    summary = _text(entry.get("summary")) or _text(entry.get("description"))
    snippet = _text(entry.get("content_snippet")) or _text(entry.get("contentSnippet"))
    summary_detail = entry.get("summary_detail")
    if not snippet and isinstance(summary_detail, dict) and not _is_html(summary_detail):
        snippet = summary

    content = _split_content(entry)

    return {
        "guid": guid,
        "title": title,
        "link": link,
        "snippet": snippet,
        "summary": summary,
        "encoded": content["encoded"],
        "content": content["raw"],
        "categories": _categories(entry),
        "enclosures": _enclosures(entry),
        "media_content": _media_list(entry, "media_content"),
        "media_thumbnail": _media_list(entry, "media_thumbnail"),
        "published_at": _to_datetime(entry),
    }
