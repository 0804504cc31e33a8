# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: Record store contract and the in-memory implementation.

The store is keyed by collection name and offers create / update / get /
list-with-filter, an idempotent create-if-absent, and change subscriptions.
A subscription is an iterator of ChangeEvent; closing it ends iteration.
NO business rules here — pure CRUD.
"""

from __future__ import annotations

import copy
import queue
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterator, NamedTuple, Optional

from sprint_desk.core.errors import CollaboratorError, RecordConflictError
from sprint_desk.models.domain import ChangeEvent

WILDCARD = "*"


def _matches(record: dict[str, Any], filters: Optional[dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(record.get(field) == value for field, value in filters.items())


class Topic(NamedTuple):
    """One record id (or every record) of a collection, optionally filtered."""

    collection: str
    record_id: str = WILDCARD
    filters: Optional[dict[str, Any]] = None

    @property
    def name(self) -> str:
        return f"{self.collection}/{self.record_id}"

    def matches(self, event: ChangeEvent) -> bool:
        if event.collection != self.collection:
            return False
        if self.record_id != WILDCARD and event.record.get("id") != self.record_id:
            return False
        return _matches(event.record, self.filters)


class Subscription(ABC):
    """Iterator over change events for one or more topics."""

    def __init__(self, topics: list[Topic]) -> None:
        if not topics:
            raise ValueError("a subscription needs at least one topic")
        self.topics = list(topics)

    def open(self) -> "Subscription":
        """Block until the store delivers every later change to this subscription."""
        return self

    @abstractmethod
    def __iter__(self) -> Iterator[ChangeEvent]:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def wants(self, event: ChangeEvent) -> bool:
        return any(topic.matches(event) for topic in self.topics)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class RecordStore(ABC):
    """Contract every backing store implements."""

    @abstractmethod
    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    def update(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    def get(self, collection: str, record_id: str) -> dict[str, Any]:
        """Return one record. Raises KeyError if it does not exist."""

    @abstractmethod
    def list(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> None:
        ...

    @abstractmethod
    def subscribe_topics(self, topics: list[Topic]) -> Subscription:
        ...

    def subscribe(
        self,
        collection: str,
        record_id: str = WILDCARD,
        filters: Optional[dict[str, Any]] = None,
    ) -> Subscription:
        return self.subscribe_topics([Topic(collection, record_id, filters)])

    def find_one(self, collection: str, filters: dict[str, Any]) -> Optional[dict[str, Any]]:
        records = self.list(collection, filters=filters, sort="created", limit=1)
        return records[0] if records else None

    def create_if_absent(
        self, collection: str, key_field: str, data: dict[str, Any]
    ) -> tuple[dict[str, Any], bool]:
        """
        Create a record unless one with the same key exists.
        Returns (record, created). A failed create is treated as "already
        exists" and re-fetched; only if nothing is found is the error raised.
        """
        key = {key_field: data[key_field]}
        existing = self.find_one(collection, key)
        if existing is not None:
            return existing, False
        try:
            return self.create(collection, data), True
        except CollaboratorError:
            existing = self.find_one(collection, key)
            if existing is None:
                raise
            return existing, False


# ── In-memory implementation ──

_CLOSED = object()


class QueueSubscription(Subscription):
    """Subscription fed by the in-memory store through a thread-safe queue."""

    def __init__(self, store: "InMemoryRecordStore", topics: list[Topic],
                 poll_seconds: float = 0.5) -> None:
        super().__init__(topics)
        self._store = store
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._poll = poll_seconds
        self._closed = False

    def push(self, event: ChangeEvent) -> None:
        if not self._closed:
            self._queue.put(event)

    def __iter__(self) -> Iterator[ChangeEvent]:
        while True:
            try:
                item = self._queue.get(timeout=self._poll)
            except queue.Empty:
                if self._closed:
                    return
                continue
            if item is _CLOSED:
                return
            yield item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._unsubscribe(self)
        self._queue.put(_CLOSED)


class InMemoryRecordStore(RecordStore):
    """Thread-safe in-process store with unique keys and change fan-out."""

    def __init__(
        self,
        unique_keys: Optional[dict[str, tuple[str, ...]]] = None,
        poll_seconds: float = 0.5,
    ) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._order: dict[str, int] = {}
        self._sequence = 0
        self._subscriptions: list[QueueSubscription] = []
        self._unique = dict(unique_keys or {})
        self._poll = poll_seconds
        self._lock = threading.RLock()

    # ── Read ──

    def get(self, collection: str, record_id: str) -> dict[str, Any]:
        with self._lock:
            record = self._collections.get(collection, {}).get(record_id)
            if record is None:
                raise KeyError(f"No record '{record_id}' in '{collection}'")
            return copy.deepcopy(record)

    def list(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            records = [
                copy.deepcopy(r)
                for r in self._collections.get(collection, {}).values()
                if _matches(r, filters)
            ]
        if sort:
            field = sort.lstrip("-")
            records.sort(
                key=lambda r: (r.get(field) is not None, r.get(field), self._order.get(r["id"], 0)),
                reverse=sort.startswith("-"),
            )
        return records[:limit] if limit else records

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))

    # ── Write ──

    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            records = self._collections.setdefault(collection, {})
            for field in self._unique.get(collection, ()):
                if field in data and any(r.get(field) == data[field] for r in records.values()):
                    raise RecordConflictError(collection, f"{field} must be unique")
            now = datetime.now(timezone.utc).isoformat()
            record = copy.deepcopy(data)
            record.update({"id": uuid.uuid4().hex[:15], "created": now, "updated": now})
            records[record["id"]] = record
            self._sequence += 1
            self._order[record["id"]] = self._sequence
            self._publish("create", collection, record)
            return copy.deepcopy(record)

    def update(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            record = self._collections.get(collection, {}).get(record_id)
            if record is None:
                raise KeyError(f"No record '{record_id}' in '{collection}'")
            changes = {k: copy.deepcopy(v) for k, v in data.items() if k not in ("id", "created")}
            record.update(changes)
            record["updated"] = datetime.now(timezone.utc).isoformat()
            self._publish("update", collection, record)
            return copy.deepcopy(record)

    def delete(self, collection: str, record_id: str) -> None:
        with self._lock:
            record = self._collections.get(collection, {}).pop(record_id, None)
            if record is None:
                raise KeyError(f"No record '{record_id}' in '{collection}'")
            self._order.pop(record_id, None)
            self._publish("delete", collection, record)

    # ── Subscriptions ──

    def subscribe_topics(self, topics: list[Topic]) -> Subscription:
        subscription = QueueSubscription(self, topics, poll_seconds=self._poll)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: QueueSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _publish(self, action: str, collection: str, record: dict[str, Any]) -> None:
        event = ChangeEvent(action=action, collection=collection, record=copy.deepcopy(record))
        for subscription in list(self._subscriptions):
            if subscription.wants(event):
                subscription.push(event)

    # ── Bulk / internal ──

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()
            self._order.clear()
            for subscription in list(self._subscriptions):
                subscription.close()
