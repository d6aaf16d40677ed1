from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_CUSTOMIZATION_LEVEL = 50
MAX_ACTIVITIES = 1000


@dataclass(frozen=True)
class Enrichment:
    """Output of the summarization collaborator for one article."""
    summary: str
    bullets: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    sentiment: str = "neutral"
    confidence: float = 0.5


@dataclass(frozen=True)
class Article:
    """
    Canonical, normalized news article.

    WARNING: Do not change fields lightly. `to_dict()` is the wire contract
    shared with clients.
    """
    id: str
    title: str
    url: Optional[str]
    source: str
    description: str = ""
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    category: str = "Other"
    region: str = "Global"
    summary: Optional[str] = None
    bullets: Optional[Tuple[str, ...]] = None
    sentiment: Optional[str] = None
    confidence: Optional[float] = None
    keywords: Optional[Tuple[str, ...]] = None

    @property
    def timestamp(self) -> float:
        """Recency sort key; undated articles sort as the epoch."""
        if self.published_at is None:
            return 0.0
        return self.published_at.timestamp()

    def with_enrichment(self, enrichment: Enrichment) -> "Article":
        return replace(
            self,
            summary=enrichment.summary,
            bullets=tuple(enrichment.bullets),
            sentiment=enrichment.sentiment,
            confidence=enrichment.confidence,
            keywords=tuple(enrichment.keywords),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "description": self.description,
            "imageUrl": self.image_url,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
            "category": self.category,
            "region": self.region,
        }
        if self.summary is not None:
            out["summary"] = self.summary
        if self.bullets is not None:
            out["bullets"] = list(self.bullets)
        if self.sentiment is not None:
            out["sentiment"] = self.sentiment
        if self.confidence is not None:
            out["confidence"] = self.confidence
        if self.keywords is not None:
            out["keywords"] = list(self.keywords)
        return out


@dataclass(frozen=True)
class ArticleMetadata:
    """Subset of an article attached to an activity and used for learning."""
    category: Optional[str] = None
    source: Optional[str] = None
    region: Optional[str] = None

    @classmethod
    def from_article(cls, article: Article) -> "ArticleMetadata":
        return cls(category=article.category, source=article.source, region=article.region)


@dataclass(frozen=True)
class Activity:
    article_id: str
    action: str
    timestamp: Any
    category: Optional[str] = None
    source: Optional[str] = None
    region: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        rec: Dict[str, Any] = {
            "articleId": self.article_id,
            "action": self.action,
            "timestamp": self.timestamp,
        }
        for key in ("category", "source", "region"):
            val = getattr(self, key)
            if val is not None:
                rec[key] = val
        return rec

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Activity":
        return cls(
            article_id=str(rec.get("articleId", "")),
            action=str(rec.get("action", "")),
            timestamp=rec.get("timestamp"),
            category=rec.get("category"),
            source=rec.get("source"),
            region=rec.get("region"),
        )


def _counters(raw: Any) -> Dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    out: Dict[str, int] = {}
    for key, val in raw.items():
        try:
            out[str(key)] = int(val)
        except (TypeError, ValueError):
            continue
    return out


@dataclass
class UserPreferenceState:
    """
    Per-user preference counters and interaction log.

    The stored record form keeps the camelCase key names clients and the
    backing table already use (`customizationLevel`, `preferredSources`, ...).
    """
    user_id: str
    customization_level: int = DEFAULT_CUSTOMIZATION_LEVEL
    preferred_sources: Dict[str, int] = field(default_factory=dict)
    preferred_categories: Dict[str, int] = field(default_factory=dict)
    preferred_labels: Dict[str, int] = field(default_factory=dict)
    activities: List[Activity] = field(default_factory=list)
    updated_at: Optional[str] = None

    def matches(self, article: Article) -> bool:
        """True when any of the article's source, category or region has positive weight."""
        return (
            self.preferred_sources.get(article.source, 0) > 0
            or self.preferred_categories.get(article.category, 0) > 0
            or self.preferred_labels.get(article.region, 0) > 0
        )

    def to_record(self) -> Dict[str, Any]:
        rec: Dict[str, Any] = {
            "user_id": self.user_id,
            "customizationLevel": self.customization_level,
            "preferredSources": dict(self.preferred_sources),
            "preferredCategories": dict(self.preferred_categories),
            "preferredLabels": dict(self.preferred_labels),
            "activities": [a.to_record() for a in self.activities],
        }
        if self.updated_at is not None:
            rec["updatedAt"] = self.updated_at
        return rec

    @classmethod
    def from_record(cls, user_id: str, rec: Optional[Dict[str, Any]]) -> "UserPreferenceState":
        if not rec:
            return cls(user_id=user_id)
        level = rec.get("customizationLevel", DEFAULT_CUSTOMIZATION_LEVEL)
        try:
            level = int(level)
        except (TypeError, ValueError):
            level = DEFAULT_CUSTOMIZATION_LEVEL
        activities = rec.get("activities") or []
        return cls(
            user_id=user_id,
            customization_level=level,
            preferred_sources=_counters(rec.get("preferredSources")),
            preferred_categories=_counters(rec.get("preferredCategories")),
            preferred_labels=_counters(rec.get("preferredLabels")),
            activities=[Activity.from_record(a) for a in activities if isinstance(a, dict)],
            updated_at=rec.get("updatedAt"),
        )
