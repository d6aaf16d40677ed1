from __future__ import annotations

import math
from typing import AbstractSet, Iterable, List, Sequence

from .models import Article, UserPreferenceState

MIN_TOKEN_LENGTH = 2


def _split_counts(limit: int, customization_level: int) -> tuple:
    level = min(max(int(customization_level), 0), 100)
    # Half rounds up (2.5 -> 3), unlike the built-in round()
    personalized = int(math.floor(limit * level / 100 + 0.5))
    return personalized, limit - personalized


def select_articles(
    articles: Sequence[Article],
    preferences: UserPreferenceState,
    customization_level: int,
    seen_ids: AbstractSet[str] = frozenset(),
    limit: int = 10,
) -> List[Article]:
    """
    Blend preference matches with everything else according to the mix knob.

    `customization_level` percent of `limit` is taken from articles whose
    source, category or region the user has liked; the rest comes from the
    articles that match nothing. Both pools keep the input (recency) order.
    A short matched pool is not topped up from the other pool, so fewer than
    `limit` articles may come back. At level 0 no preference weighting applies
    and the result is the plain recency feed.
    """
    if limit <= 0:
        return []
    personalized_count, random_count = _split_counts(limit, customization_level)
    if personalized_count == 0:
        return latest_articles(articles, seen_ids, limit)

    matched: List[Article] = []
    unmatched: List[Article] = []
    for a in articles:
        if a.id in seen_ids:
            continue
        (matched if preferences.matches(a) else unmatched).append(a)

    picked = matched[:personalized_count] + unmatched[:random_count]
    return picked[:limit]


def latest_articles(
    articles: Iterable[Article],
    seen_ids: AbstractSet[str] = frozenset(),
    limit: int = 10,
) -> List[Article]:
    """Unpersonalized feed: input order minus seen ids."""
    if limit <= 0:
        return []
    out: List[Article] = []
    for a in articles:
        if a.id in seen_ids:
            continue
        out.append(a)
        if len(out) >= limit:
            break
    return out


def query_tokens(query: str) -> List[str]:
    return [t for t in (query or "").lower().split() if len(t) >= MIN_TOKEN_LENGTH]


def search_articles(articles: Iterable[Article], query: str, limit: int = 20) -> List[Article]:
    """
    Keyword search over title, description, category and region.

    Score is the number of query tokens found as substrings; only articles
    with a positive score are kept, best first, ties in input order.
    """
    tokens = query_tokens(query)
    if not tokens or limit <= 0:
        return []
    scored = []
    for a in articles:
        hay = f"{a.title} {a.description} {a.category} {a.region}".lower()
        score = sum(1 for t in tokens if t in hay)
        if score > 0:
            scored.append((score, a))
    scored.sort(key=lambda x: x[0], reverse=True)
    return [a for _, a in scored[:limit]]
