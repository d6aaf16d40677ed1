"""Key-value collaborators: user preference records and the stored article table."""
from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from dateutil.parser import parse as parse_date

from .exceptions import NetworkError, StorageError
from .models import Article

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
RecordUpdate = Callable[[Optional[Record]], Record]

USER_TABLE = "UserData"
ARTICLE_TABLE = "NewsArticles"


class PreferenceStore:
    """
    get/put on per-user records keyed by user id.

    `with_user_record` is the single read-modify-write step used for every
    mutation. Atomicity is up to the implementation; this base version is a
    plain get followed by put (last write wins).
    """

    def get(self, user_id: str) -> Optional[Record]:  # pragma: no cover - interface
        raise NotImplementedError

    def put(self, user_id: str, record: Record) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def with_user_record(self, user_id: str, fn: RecordUpdate) -> Record:
        record = fn(self.get(user_id))
        self.put(user_id, record)
        return record


class InMemoryPreferenceStore(PreferenceStore):
    """Process-local store. A lock makes `with_user_record` atomic."""

    def __init__(self, records: Optional[Dict[str, Record]] = None) -> None:
        self._records: Dict[str, Record] = copy.deepcopy(records) if records else {}
        self._lock = threading.RLock()

    def get(self, user_id: str) -> Optional[Record]:
        with self._lock:
            rec = self._records.get(user_id)
            return copy.deepcopy(rec) if rec is not None else None

    def put(self, user_id: str, record: Record) -> None:
        with self._lock:
            self._records[user_id] = copy.deepcopy(record)

    def with_user_record(self, user_id: str, fn: RecordUpdate) -> Record:
        with self._lock:
            return super().with_user_record(user_id, fn)


def to_dynamo(value: Any) -> Any:
    """DynamoDB rejects floats; send them as Decimal."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_dynamo(v) for v in value]
    return value


def from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


def dynamo_table(table_name: str, *, region: str, endpoint_url: Optional[str] = None):
    kwargs: Dict[str, Any] = {
        "region_name": region,
        "config": Config(retries={"max_attempts": 3, "mode": "adaptive"}),
    }
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    return boto3.resource("dynamodb", **kwargs).Table(table_name)


class DynamoPreferenceStore(PreferenceStore):
    """
    Preference records in a DynamoDB table keyed by `user_id`.

    Read-modify-write is a get_item then put_item with no condition, so two
    concurrent writers for the same user can lose an update.
    """

    def __init__(self, table: Any) -> None:
        self.table = table

    @classmethod
    def connect(
        cls,
        *,
        table_name: str = USER_TABLE,
        region: str = "ap-southeast-2",
        endpoint_url: Optional[str] = None,
    ) -> "DynamoPreferenceStore":
        return cls(dynamo_table(table_name, region=region, endpoint_url=endpoint_url))

    def get(self, user_id: str) -> Optional[Record]:
        try:
            resp = self.table.get_item(Key={"user_id": user_id})
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to read preferences for {user_id}: {e}") from e
        item = resp.get("Item")
        return from_dynamo(item) if item else None

    def put(self, user_id: str, record: Record) -> None:
        item = dict(record)
        item["user_id"] = user_id
        try:
            self.table.put_item(Item=to_dynamo(item))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to write preferences for {user_id}: {e}") from e


def _parse_stored_date(val: Any) -> Optional[datetime]:
    if not isinstance(val, str) or not val.strip():
        return None
    try:
        dt = parse_date(val)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def article_from_item(item: Record) -> Optional[Article]:
    """Map a stored article row to an Article. Rows without an id are skipped."""
    article_id = item.get("article_id") or item.get("id")
    if not article_id:
        return None
    labels = item.get("labels") or []
    # string sets come back from boto3 as Python sets
    labels = sorted(labels, key=str) if isinstance(labels, (set, frozenset)) else list(labels)
    region = item.get("region") or (labels[0] if labels else None) or "Global"
    summary = item.get("structuredSummary") or item.get("summary")
    return Article(
        id=str(article_id),
        title=str(item.get("title") or "(untitled)").strip(),
        url=item.get("url"),
        source=item.get("source") or "unknown",
        description=item.get("description") or item.get("content") or "",
        image_url=item.get("imageUrl"),
        published_at=_parse_stored_date(item.get("publishedAt")),
        category=item.get("category") or "Other",
        region=region,
        summary=summary if isinstance(summary, str) and summary else None,
    )


class DynamoArticleSource:
    """Secondary article source: scan of a pre-populated article table."""

    def __init__(self, table: Any, *, limit: int = 100) -> None:
        self.table = table
        self.limit = limit

    @classmethod
    def connect(
        cls,
        *,
        table_name: str = ARTICLE_TABLE,
        region: str = "ap-southeast-2",
        endpoint_url: Optional[str] = None,
        limit: int = 100,
    ) -> "DynamoArticleSource":
        return cls(dynamo_table(table_name, region=region, endpoint_url=endpoint_url), limit=limit)

    @property
    def name(self) -> str:
        return f"dynamodb:{getattr(self.table, 'name', ARTICLE_TABLE)}"

    def fetch_articles(self) -> List[Article]:
        try:
            resp = self.table.scan(Limit=self.limit)
        except (BotoCoreError, ClientError) as e:
            raise NetworkError(f"Failed to scan {self.name}: {e}") from e
        out: List[Article] = []
        for item in resp.get("Items", []):
            try:
                article = article_from_item(from_dynamo(item))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed row from %s: %s", self.name, e)
                continue
            if article is not None:
                out.append(article)
        return out
