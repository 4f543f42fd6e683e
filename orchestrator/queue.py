"""Priority work queue with URL dedup, exclusion filter and durable snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import ValidationError

from core import QueueItem
from storage import BaseDurableStore
from utils.exceptions import StorageError


logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

SYSTEM_PATHS = ("/wp-admin", "/wp-login", "/feed", "/sitemap", "/robots", "/?p=")

_CAMEL_KEYS = {
    "healthScore": "health_score",
    "addedAt": "added_at",
    "retryCount": "retry_count",
    "lastError": "last_error",
}


def normalize_url(url: str) -> str:
    """Canonical form used for duplicate detection."""
    text = str(url or "").strip()
    if not text:
        return text
    try:
        split = urlsplit(text)
    except ValueError:
        return text.lower()
    scheme = (split.scheme or "https").lower()
    netloc = split.netloc.lower()
    path = split.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    query_params = parse_qsl(split.query, keep_blank_values=True)
    query = urlencode(sorted(query_params)) if query_params else ""
    return urlunsplit((scheme, netloc, path, query, ""))


def sort_key(item: QueueItem) -> Tuple[int, int]:
    """Priority weight descending, then health score ascending."""
    return (-item.priority.weight, item.health_score)


class UrlExclusionFilter:
    """Drops URLs that must never enter the queue."""

    def __init__(
        self,
        excluded_urls: Optional[Iterable[str]] = None,
        excluded_categories: Optional[Iterable[str]] = None,
        system_paths: Sequence[str] = SYSTEM_PATHS,
    ) -> None:
        self.excluded_urls = [u.strip().lower() for u in (excluded_urls or []) if u and u.strip()]
        self.excluded_categories = [
            c.strip().strip("/").lower() for c in (excluded_categories or []) if c and c.strip().strip("/")
        ]
        self.system_paths = [p.lower() for p in system_paths]

    def reason(self, url: str) -> Optional[str]:
        """Why ``url`` is excluded, or None when it may be queued."""
        lowered = str(url or "").lower()
        for excluded in self.excluded_urls:
            if excluded in lowered:
                return f"excluded url '{excluded}'"
        for category in self.excluded_categories:
            if f"/{category}/" in lowered:
                return f"excluded category '{category}'"
        for path in self.system_paths:
            if path in lowered:
                return f"system path '{path}'"
        return None

    def is_excluded(self, url: str) -> bool:
        return self.reason(url) is not None


def encode_queue(items: Sequence[QueueItem]) -> bytes:
    payload = {
        "version": SNAPSHOT_VERSION,
        "saved_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "items": [item.model_dump(mode="json") for item in items],
    }
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _clean_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = dict(entry)
    for camel, snake in _CAMEL_KEYS.items():
        if camel in cleaned and snake not in cleaned:
            cleaned[snake] = cleaned.pop(camel)
    for key in ("added_at", "retry_count", "health_score", "id"):
        if cleaned.get(key) is None:
            cleaned.pop(key, None)
    return cleaned


def decode_queue(data: Optional[bytes]) -> List[QueueItem]:
    """Decode a snapshot, dropping malformed entries instead of failing."""
    if not data:
        return []
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("queue snapshot unreadable, starting empty: %s", e)
        return []

    entries = payload.get("items") if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        logger.warning("queue snapshot has no item list, starting empty")
        return []

    items: List[QueueItem] = []
    seen = set()
    dropped = 0
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("url"), str):
            dropped += 1
            continue
        try:
            item = QueueItem.model_validate(_clean_entry(entry))
        except ValidationError:
            dropped += 1
            continue
        key = normalize_url(item.url)
        if key in seen:
            dropped += 1
            continue
        seen.add(key)
        items.append(item)

    if dropped:
        logger.warning("queue snapshot: dropped %s malformed entries", dropped)
    items.sort(key=sort_key)
    return items


class PriorityQueueStore:
    """Ordered, deduplicated queue. Every mutation is snapshotted to the store."""

    def __init__(
        self,
        store: Optional[BaseDurableStore] = None,
        exclusions: Optional[UrlExclusionFilter] = None,
    ) -> None:
        self._store = store
        self.exclusions = exclusions or UrlExclusionFilter()
        self._items: List[QueueItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self.find(url) is not None

    def find(self, url: str) -> Optional[QueueItem]:
        key = normalize_url(url)
        for item in self._items:
            if normalize_url(item.url) == key:
                return item
        return None

    def snapshot(self) -> List[QueueItem]:
        return [item.model_copy(deep=True) for item in self._items]

    def urls(self) -> List[str]:
        return [item.url for item in self._items]

    def sort(self) -> None:
        self._items.sort(key=sort_key)
        self.persist()

    def _admit(self, item: QueueItem) -> bool:
        reason = self.exclusions.reason(item.url)
        if reason:
            logger.info("queue_excluded url=%s reason=%s", item.url, reason)
            return False
        if self.find(item.url) is not None:
            return False
        self._items.append(item)
        return True

    def push(self, item: QueueItem) -> bool:
        """Enqueue ``item``. No-op (False) when excluded or already queued."""
        added = self._admit(item)
        if added:
            self.sort()
        return added

    def push_many(self, items: Iterable[QueueItem]) -> int:
        added = sum(1 for item in items if self._admit(item))
        if added:
            self.sort()
        return added

    def shift(self) -> Optional[QueueItem]:
        """Remove and return the head of the queue."""
        if not self._items:
            return None
        item = self._items.pop(0)
        self.persist()
        return item

    def requeue(self, item: QueueItem) -> bool:
        """Put a retried item back into its place in the total order.

        When the URL was queued again meanwhile, the retry state is merged
        into that entry and False is returned.
        """
        existing = self.find(item.url)
        if existing is not None:
            existing.retry_count = max(existing.retry_count, item.retry_count)
            existing.last_error = item.last_error
            self.persist()
            return False
        self._items.append(item)
        self.sort()
        return True

    def remove(self, item_id: str) -> bool:
        before = len(self._items)
        self._items = [item for item in self._items if item.id != item_id]
        if len(self._items) == before:
            return False
        self.persist()
        return True

    def clear(self) -> None:
        self._items = []
        self.persist()

    def replace(self, items: Iterable[QueueItem]) -> int:
        """Reset the queue to ``items`` (filtered, deduplicated, sorted)."""
        self._items = []
        return self.push_many(items)

    def persist(self) -> bool:
        if self._store is None:
            return False
        try:
            self._store.save(encode_queue(self._items))
        except StorageError as e:
            logger.warning("queue persist failed: %s", e)
            return False
        return True

    def restore(self) -> int:
        """Load the persisted snapshot. Returns the number of restored items."""
        if self._store is None:
            return 0
        try:
            data = self._store.load()
        except StorageError as e:
            logger.warning("queue restore failed: %s", e)
            return 0
        self._items = [item for item in decode_queue(data) if not self.exclusions.is_excluded(item.url)]
        return len(self._items)
