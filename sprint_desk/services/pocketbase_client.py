# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: PocketBase client — the external record store over HTTP.
Implements the RecordStore contract with httpx. Every failure is logged and
raised as CollaboratorError; no automatic retry (that belongs to callers).
"""

from __future__ import annotations

import json
import time
from typing import Any, Iterable, Iterator, Optional
from urllib.parse import quote

import httpx

from sprint_desk.core.config import settings
from sprint_desk.core.errors import CollaboratorError, RecordConflictError
from sprint_desk.core.logging import get_logger
from sprint_desk.metrics.prometheus import STORE_ERRORS, STORE_LATENCY, STORE_OPERATIONS
from sprint_desk.models.domain import ChangeEvent
from sprint_desk.repositories.record_store import RecordStore, Subscription, Topic

logger = get_logger(__name__)

PAGE_SIZE = 200
CONNECT_EVENT = "PB_CONNECT"
_REGISTERED = object()


def build_filter(filters: Optional[dict[str, Any]]) -> Optional[str]:
    """Render equality filters as a PocketBase filter expression."""
    if not filters:
        return None
    clauses = []
    for field, value in filters.items():
        if value is None:
            rendered = "null"
        elif isinstance(value, bool):
            rendered = "true" if value else "false"
        elif isinstance(value, (int, float)):
            rendered = repr(value)
        else:
            escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
            rendered = f'"{escaped}"'
        clauses.append(f"{field}={rendered}")
    return " && ".join(clauses)


def iter_sse(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """Yield (event, data) pairs from a server-sent-events line stream."""
    event = "message"
    data: list[str] = []
    for line in lines:
        if line == "":
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


def _is_unique_violation(response: httpx.Response) -> bool:
    try:
        body = response.json()
    except ValueError:
        return False
    fields = body.get("data") or {}
    return any(
        isinstance(err, dict) and err.get("code") == "validation_not_unique"
        for err in fields.values()
    )


def subscription_key(topic: Topic) -> str:
    """Topic name as registered with PocketBase, server-side filter included."""
    expression = build_filter(topic.filters)
    if not expression:
        return topic.name
    options = json.dumps({"query": {"filter": expression}})
    return f"{topic.name}?options={quote(options)}"


class PocketBaseSubscription(Subscription):
    """Realtime subscription read from PocketBase's SSE endpoint."""

    def __init__(self, store: "PocketBaseStore", topics: list[Topic]) -> None:
        super().__init__(topics)
        self._store = store
        self._client: Optional[httpx.Client] = None
        self._response: Optional[httpx.Response] = None
        self._events: Optional[Iterator[Any]] = None
        self._closed = False

    @property
    def label(self) -> str:
        return ",".join(topic.collection for topic in self.topics)

    def _topic_for(self, event_name: str) -> Optional[Topic]:
        for topic in self.topics:
            if event_name == topic.name or event_name.startswith(f"{topic.name}?"):
                return topic
        return None

    def open(self) -> "PocketBaseSubscription":
        """Connect and register the topics; returns once PocketBase accepted them."""
        if self._events is None:
            self._events = self._stream()
            for item in self._events:
                if item is _REGISTERED:
                    break
        return self

    def __iter__(self) -> Iterator[ChangeEvent]:
        self.open()
        for item in self._events:
            if item is not _REGISTERED:
                yield item

    def _stream(self) -> Iterator[Any]:
        try:
            self._client = self._store.client(stream=True)
            with self._client.stream("GET", "/api/realtime") as response:
                self._response = response
                if response.status_code >= 400:
                    STORE_ERRORS.labels(operation="subscribe", collection=self.label).inc()
                    raise CollaboratorError(
                        "subscribe", self.label, f"HTTP {response.status_code}"
                    )
                for event, data in iter_sse(response.iter_lines()):
                    if self._closed:
                        return
                    if event == CONNECT_EVENT:
                        self._register(json.loads(data)["clientId"])
                        yield _REGISTERED
                        continue
                    topic = self._topic_for(event)
                    if topic is None:
                        continue
                    payload = json.loads(data)
                    change = ChangeEvent(
                        action=payload["action"],
                        collection=topic.collection,
                        record=payload["record"],
                    )
                    if self.wants(change):
                        yield change
        except httpx.HTTPError as exc:
            if self._closed:
                return
            STORE_ERRORS.labels(operation="subscribe", collection=self.label).inc()
            logger.warning("Subscription failed: topics=%s, error=%s", self.label, exc)
            raise CollaboratorError("subscribe", self.label, str(exc)) from exc
        finally:
            self._release()

    def _register(self, client_id: str) -> None:
        self._store.request(
            "POST",
            "/api/realtime",
            operation="subscribe",
            collection=self.label,
            json={
                "clientId": client_id,
                "subscriptions": [subscription_key(t) for t in self.topics],
            },
        )
        logger.info("Subscribed: topics=%s, client_id=%s", self.label, client_id)

    def _release(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def close(self) -> None:
        self._closed = True
        if self._response is not None:
            self._response.close()
        self._release()


class PocketBaseStore(RecordStore):
    """RecordStore backed by a PocketBase server's REST API."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.base_url = (base_url or settings.POCKETBASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.POCKETBASE_TIMEOUT

    def client(self, stream: bool = False) -> httpx.Client:
        timeout = httpx.Timeout(self.timeout, read=None) if stream else self.timeout
        return httpx.Client(base_url=self.base_url, timeout=timeout)

    def request(
        self,
        method: str,
        path: str,
        operation: str,
        collection: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Perform one call; map transport and HTTP failures to store errors."""
        STORE_OPERATIONS.labels(operation=operation, collection=collection).inc()
        start = time.time()
        try:
            with self.client() as client:
                response = client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            STORE_ERRORS.labels(operation=operation, collection=collection).inc()
            logger.warning("Store %s failed: collection=%s, error=%s", operation, collection, exc)
            raise CollaboratorError(operation, collection, str(exc)) from exc
        finally:
            STORE_LATENCY.labels(operation=operation).observe(time.time() - start)

        if response.status_code == 404 and operation in ("get", "update", "delete"):
            raise KeyError(f"No record at '{path}'")
        if response.status_code >= 400:
            STORE_ERRORS.labels(operation=operation, collection=collection).inc()
            logger.warning(
                "Store %s rejected: collection=%s, status=%d",
                operation, collection, response.status_code,
            )
            if operation == "create" and _is_unique_violation(response):
                raise RecordConflictError(collection, response.text)
            raise CollaboratorError(operation, collection, f"HTTP {response.status_code}")
        return response

    def _records_path(self, collection: str, record_id: Optional[str] = None) -> str:
        path = f"/api/collections/{collection}/records"
        return f"{path}/{record_id}" if record_id else path

    # ── RecordStore ──

    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        return self.request(
            "POST", self._records_path(collection), "create", collection, json=data
        ).json()

    def update(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return self.request(
            "PATCH", self._records_path(collection, record_id), "update", collection, json=data
        ).json()

    def get(self, collection: str, record_id: str) -> dict[str, Any]:
        return self.request(
            "GET", self._records_path(collection, record_id), "get", collection
        ).json()

    def delete(self, collection: str, record_id: str) -> None:
        self.request("DELETE", self._records_path(collection, record_id), "delete", collection)

    def list(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"perPage": min(limit, PAGE_SIZE) if limit else PAGE_SIZE}
        expression = build_filter(filters)
        if expression:
            params["filter"] = expression
        if sort:
            params["sort"] = sort

        items: list[dict[str, Any]] = []
        page = 1
        while True:
            params["page"] = page
            body = self.request(
                "GET", self._records_path(collection), "list", collection, params=params
            ).json()
            items.extend(body.get("items", []))
            if limit and len(items) >= limit:
                return items[:limit]
            if page >= body.get("totalPages", 1):
                return items
            page += 1

    def subscribe_topics(self, topics: list[Topic]) -> Subscription:
        return PocketBaseSubscription(self, topics)
