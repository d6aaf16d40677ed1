from __future__ import annotations

from typing import Iterable, List, Optional, Set

from .models import Article


def canonical_url(url: Optional[str]) -> Optional[str]:
    """URL without its fragment; None for missing or blank URLs."""
    if not url:
        return None
    key = url.split("#", 1)[0].strip()
    return key or None


def deduplicate(items: Iterable[Article]) -> List[Article]:
    """
    Remove duplicates by canonical URL (fragment stripped).
    Articles without a URL are dropped. Keeps the first occurrence and
    preserves original order.
    """
    seen: Set[str] = set()
    out: List[Article] = []
    for it in items:
        key = canonical_url(it.url)
        if key is None or key in seen:
            continue
        seen.add(key)
        out.append(it)
    return out


def sort_by_recency(items: Iterable[Article]) -> List[Article]:
    """Newest first; undated articles sink to the end, ties keep their order."""
    return sorted(items, key=lambda a: a.timestamp, reverse=True)
