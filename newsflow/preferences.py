from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .exceptions import StorageError
from .models import MAX_ACTIVITIES, Activity, ArticleMetadata, UserPreferenceState
from .store import PreferenceStore

logger = logging.getLogger(__name__)

ACTIONS = frozenset({"viewed", "liked", "disliked", "shared"})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _bump(counters: Dict[str, int], key: Optional[str]) -> None:
    if key:
        counters[key] = counters.get(key, 0) + 1


class PreferenceLearner:
    """
    Owns per-user preference state.

    Every mutation is one `store.with_user_record` call; whether that is
    atomic depends on the store.
    """

    def __init__(self, store: PreferenceStore, *, clock: Callable[[], str] = utc_now_iso) -> None:
        self.store = store
        self.clock = clock

    def get_preferences(self, user_id: str) -> UserPreferenceState:
        """Stored state, or the defaults when there is none or the store is unreachable."""
        try:
            rec = self.store.get(user_id)
        except StorageError as e:
            logger.warning("Using default preferences for %s: %s", user_id, e)
            rec = None
        return UserPreferenceState.from_record(user_id, rec)

    def record_activity(
        self,
        user_id: str,
        article_id: str,
        action: str,
        timestamp: Any,
        metadata: Optional[ArticleMetadata] = None,
    ) -> UserPreferenceState:
        if action not in ACTIONS:
            raise ValueError(f"Unknown action: {action!r}")

        activity = Activity(
            article_id=article_id,
            action=action,
            timestamp=timestamp,
            category=metadata.category if metadata else None,
            source=metadata.source if metadata else None,
            region=metadata.region if metadata else None,
        )

        def apply(rec: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            state = UserPreferenceState.from_record(user_id, rec)
            state.activities.append(activity)
            # oldest entries fall off first
            state.activities = state.activities[-MAX_ACTIVITIES:]
            if action == "liked" and metadata is not None:
                _bump(state.preferred_labels, metadata.region)
                _bump(state.preferred_sources, metadata.source)
                _bump(state.preferred_categories, metadata.category)
            state.updated_at = self.clock()
            return state.to_record()

        rec = self.store.with_user_record(user_id, apply)
        logger.debug("Recorded %s on %s for %s", action, article_id, user_id)
        return UserPreferenceState.from_record(user_id, rec)

    def set_customization_level(
        self,
        user_id: str,
        level: int,
        updated_at: Optional[str] = None,
    ) -> UserPreferenceState:
        if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= 100:
            raise ValueError(f"customization level must be an integer 0-100, got {level!r}")

        def apply(rec: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            state = UserPreferenceState.from_record(user_id, rec)
            state.customization_level = level
            state.updated_at = updated_at or self.clock()
            return state.to_record()

        rec = self.store.with_user_record(user_id, apply)
        return UserPreferenceState.from_record(user_id, rec)
