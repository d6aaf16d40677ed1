from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Pattern, Sequence, Tuple
from urllib.parse import urlparse

DEFAULT_CATEGORY = "Other"
DEFAULT_REGION = "Global"


@dataclass(frozen=True)
class KeywordRule:
    label: str
    pattern: Pattern[str]

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))


@dataclass(frozen=True)
class PublisherRule:
    """Host suffix plus optional path fragment that pins a category."""
    host: str
    path: str
    label: str

    def matches(self, host: str, path: str) -> bool:
        if not (host == self.host or host.endswith("." + self.host)):
            return False
        return not self.path or self.path in path


def _words(*alternatives: str) -> Pattern[str]:
    # letters on either side break a match, so "ai" never hits "said"
    body = "|".join(alternatives)
    return re.compile(rf"(?<![a-z])(?:{body})(?![a-z])")


CATEGORY_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule("World", _words(
        r"world", r"international", r"foreign", r"war", r"ukraine", r"gaza",
        r"israel", r"united nations", r"nato", r"refugees?", r"diplomac\w*",
    )),
    KeywordRule("Politics", _words(
        r"politics?", r"political", r"elections?", r"senate", r"congress",
        r"parliament", r"president\w*", r"ministers?", r"government",
        r"campaign", r"democrats?", r"republicans?", r"white house", r"vote\w*",
    )),
    KeywordRule("Business", _words(
        r"business", r"compan(?:y|ies)", r"mergers?", r"acquisitions?", r"ceo",
        r"startups?", r"retail", r"industry", r"earnings", r"corporate",
    )),
    KeywordRule("Finance", _words(
        r"finance", r"financial", r"stocks?", r"markets?", r"econom\w*",
        r"inflation", r"interest rates?", r"banks?", r"invest\w*", r"crypto\w*",
        r"bitcoin", r"wall street", r"money",
    )),
    KeywordRule("Technology", _words(
        r"tech", r"technology", r"software", r"ai", r"artificial intelligence",
        r"apple", r"google", r"microsoft", r"smartphones?", r"gadgets?",
        r"cyber\w*", r"internet", r"robots?", r"chips?",
    )),
    KeywordRule("Science", _words(
        r"science", r"scientists?", r"scientific", r"research\w*", r"space",
        r"nasa", r"climate", r"physics", r"biology", r"astronom\w*", r"fossils?",
    )),
    KeywordRule("Health", _words(
        r"health", r"medical", r"medicine", r"covid", r"vaccines?", r"disease",
        r"hospitals?", r"cancer", r"wellness", r"nutrition", r"virus",
    )),
    KeywordRule("Sports", _words(
        r"sports?", r"football", r"soccer", r"nba", r"nfl", r"cricket",
        r"tennis", r"olympic\w*", r"championships?", r"league",
    )),
    KeywordRule("Entertainment", _words(
        r"entertainment", r"movies?", r"films?", r"music", r"celebrit\w*",
        r"tv", r"television", r"hollywood", r"albums?", r"netflix", r"arts",
    )),
)

PUBLISHER_RULES: Tuple[PublisherRule, ...] = (
    PublisherRule("bbc.co.uk", "/news/world", "World"),
    PublisherRule("bbc.co.uk", "/news/politics", "Politics"),
    PublisherRule("bbc.co.uk", "/news/uk-politics", "Politics"),
    PublisherRule("bbc.co.uk", "/news/business", "Business"),
    PublisherRule("bbc.co.uk", "/news/technology", "Technology"),
    PublisherRule("bbc.co.uk", "/news/science", "Science"),
    PublisherRule("bbc.co.uk", "/news/health", "Health"),
    PublisherRule("bbc.co.uk", "/sport/", "Sports"),
    PublisherRule("bbc.com", "/news/world", "World"),
    PublisherRule("bbc.com", "/sport/", "Sports"),
    PublisherRule("nytimes.com", "/world/", "World"),
    PublisherRule("nytimes.com", "/us/politics/", "Politics"),
    PublisherRule("nytimes.com", "/business/", "Business"),
    PublisherRule("nytimes.com", "/technology/", "Technology"),
    PublisherRule("nytimes.com", "/science/", "Science"),
    PublisherRule("nytimes.com", "/health/", "Health"),
    PublisherRule("nytimes.com", "/sports/", "Sports"),
    PublisherRule("nytimes.com", "/arts/", "Entertainment"),
    PublisherRule("npr.org", "/sections/politics", "Politics"),
    PublisherRule("npr.org", "/sections/health", "Health"),
    PublisherRule("theverge.com", "", "Technology"),
    PublisherRule("arstechnica.com", "", "Technology"),
    PublisherRule("techcrunch.com", "", "Technology"),
    PublisherRule("espn.com", "", "Sports"),
)

FEED_TITLE_HINTS: Tuple[Tuple[str, str], ...] = (
    ("technology", "Technology"),
    ("tech", "Technology"),
    ("business", "Business"),
    ("finance", "Finance"),
    ("politic", "Politics"),
    ("science", "Science"),
    ("health", "Health"),
    ("sport", "Sports"),
    ("entertainment", "Entertainment"),
    ("world", "World"),
)

REGION_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("latin america", "South America"),
    ("south america", "South America"),
    ("usa", "North America"),
    ("u.s.", "North America"),
    ("united states", "North America"),
    ("america", "North America"),
    ("american", "North America"),
    ("washington", "North America"),
    ("new york", "North America"),
    ("california", "North America"),
    ("texas", "North America"),
    ("canada", "North America"),
    ("toronto", "North America"),
    ("mexico", "North America"),
    ("uk", "Europe"),
    ("britain", "Europe"),
    ("british", "Europe"),
    ("england", "Europe"),
    ("scotland", "Europe"),
    ("london", "Europe"),
    ("ireland", "Europe"),
    ("france", "Europe"),
    ("paris", "Europe"),
    ("germany", "Europe"),
    ("berlin", "Europe"),
    ("italy", "Europe"),
    ("rome", "Europe"),
    ("spain", "Europe"),
    ("madrid", "Europe"),
    ("poland", "Europe"),
    ("ukraine", "Europe"),
    ("kyiv", "Europe"),
    ("russia", "Europe"),
    ("moscow", "Europe"),
    ("eu", "Europe"),
    ("brussels", "Europe"),
    ("china", "Asia"),
    ("chinese", "Asia"),
    ("beijing", "Asia"),
    ("hong kong", "Asia"),
    ("taiwan", "Asia"),
    ("japan", "Asia"),
    ("tokyo", "Asia"),
    ("korea", "Asia"),
    ("seoul", "Asia"),
    ("india", "Asia"),
    ("delhi", "Asia"),
    ("pakistan", "Asia"),
    ("singapore", "Asia"),
    ("vietnam", "Asia"),
    ("indonesia", "Asia"),
    ("philippines", "Asia"),
    ("australia", "Oceania"),
    ("sydney", "Oceania"),
    ("melbourne", "Oceania"),
    ("new zealand", "Oceania"),
    ("israel", "Middle East"),
    ("iran", "Middle East"),
    ("iraq", "Middle East"),
    ("syria", "Middle East"),
    ("lebanon", "Middle East"),
    ("saudi", "Middle East"),
    ("yemen", "Middle East"),
    ("brazil", "South America"),
    ("argentina", "South America"),
    ("chile", "South America"),
    ("colombia", "South America"),
    ("venezuela", "South America"),
    ("peru", "South America"),
    ("nigeria", "Africa"),
    ("kenya", "Africa"),
    ("south africa", "Africa"),
    ("egypt", "Africa"),
    ("ethiopia", "Africa"),
    ("sudan", "Africa"),
)

REGION_PATTERNS: Tuple[KeywordRule, ...] = (
    KeywordRule("Middle East", _words(r"middle east\w*", r"gaza", r"west bank", r"gulf states", r"hezbollah", r"hamas")),
    KeywordRule("South America", _words(r"latin america\w*", r"south america\w*")),
    KeywordRule("Africa", _words(r"africa\w*", r"sahel")),
    KeywordRule("Europe", _words(r"europe\w*", r"european union")),
    KeywordRule("Asia", _words(r"asia\w*", r"asia-pacific")),
)

def compile_region_keywords(table: Sequence[Tuple[str, str]]) -> Tuple[Tuple[Pattern[str], str], ...]:
    """Turn a (keyword, region) table into matchers accepted by infer_region."""
    return tuple((re.compile(rf"(?<![a-z]){re.escape(kw)}(?![a-z])"), region) for kw, region in table)


REGION_KEYWORD_PATTERNS = compile_region_keywords(REGION_KEYWORDS)


def _lower_join(parts: Iterable[Optional[str]]) -> str:
    return " ".join(p for p in parts if p).lower()


def category_haystack(
    categories: Sequence[str],
    title: str,
    snippet: str,
    feed_title: Optional[str],
    link: Optional[str],
    feed_url: Optional[str],
) -> str:
    return _lower_join([*categories, title, snippet, feed_title, link, feed_url])


def match_keyword_rules(text: str, rules: Sequence[KeywordRule]) -> Optional[str]:
    for rule in rules:
        if rule.matches(text):
            return rule.label
    return None


def match_publisher_rules(urls: Iterable[Optional[str]], rules: Sequence[PublisherRule]) -> Optional[str]:
    for url in urls:
        if not url:
            continue
        try:
            parsed = urlparse(url.lower())
        except ValueError:
            continue
        host = parsed.hostname or ""
        for rule in rules:
            if rule.matches(host, parsed.path or "/"):
                return rule.label
    return None


def match_feed_title(feed_title: Optional[str], hints: Sequence[Tuple[str, str]]) -> Optional[str]:
    if not feed_title:
        return None
    t = feed_title.lower()
    for needle, label in hints:
        if needle in t:
            return label
    return None


def infer_category(
    *,
    categories: Sequence[str] = (),
    title: str = "",
    snippet: str = "",
    feed_title: Optional[str] = None,
    link: Optional[str] = None,
    feed_url: Optional[str] = None,
    keyword_rules: Sequence[KeywordRule] = CATEGORY_RULES,
    publisher_rules: Sequence[PublisherRule] = PUBLISHER_RULES,
    title_hints: Sequence[Tuple[str, str]] = FEED_TITLE_HINTS,
) -> str:
    """
    Best-effort category. First match wins across, in order: keyword buckets,
    publisher host/path rules, feed-title hints. Falls back to "Other".
    """
    hay = category_haystack(categories, title, snippet, feed_title, link, feed_url)
    label = match_keyword_rules(hay, keyword_rules)
    if label:
        return label
    label = match_publisher_rules((link, feed_url), publisher_rules)
    if label:
        return label
    return match_feed_title(feed_title, title_hints) or DEFAULT_CATEGORY


def infer_region(
    title: str,
    description: str,
    *,
    keywords: Sequence[Tuple[Pattern[str], str]] = REGION_KEYWORD_PATTERNS,
    patterns: Sequence[KeywordRule] = REGION_PATTERNS,
) -> str:
    """Best-effort region from title + description. First match wins; falls back to "Global"."""
    text = _lower_join([title, description])
    for pattern, region in keywords:
        if pattern.search(text):
            return region
    return match_keyword_rules(text, patterns) or DEFAULT_REGION
