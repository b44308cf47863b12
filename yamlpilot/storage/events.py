"""Append-only webhook event log.

Two backends share the EventStore interface:
- MemoryEventStore: process-local, newest-first list, capped
- RedisEventStore: JSON records on Redis lists (LPUSH + LTRIM), one global
  list plus one list per repository

Records are never updated or deleted individually; the only eviction is
the history cap, which drops the oldest records.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

import redis

from yamlpilot.config import Settings
from yamlpilot.models import WebhookEventRecord

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50

_KEY_PREFIX = "yamlpilot:events"


class EventStore(Protocol):
    backend: str

    def append(self, record: WebhookEventRecord) -> WebhookEventRecord: ...

    def list(self, limit: int = DEFAULT_LIMIT) -> list[WebhookEventRecord]: ...

    def list_by_repository(
        self, repository: str, limit: int = DEFAULT_LIMIT
    ) -> list[WebhookEventRecord]: ...


class MemoryEventStore:
    """In-memory event log.

    Suitable for a single process; history is lost on restart.
    """

    backend = "memory"

    def __init__(self, max_events: int = 500) -> None:
        self._max_events = max_events
        self._events: list[WebhookEventRecord] = []
        self._lock = threading.Lock()

    def append(self, record: WebhookEventRecord) -> WebhookEventRecord:
        with self._lock:
            self._events.insert(0, record)
            del self._events[self._max_events :]
        return record

    def list(self, limit: int = DEFAULT_LIMIT) -> list[WebhookEventRecord]:
        with self._lock:
            return self._events[: max(limit, 0)]

    def list_by_repository(self, repository: str, limit: int = DEFAULT_LIMIT) -> list[WebhookEventRecord]:
        with self._lock:
            matching = [e for e in self._events if e.repository == repository]
        return matching[: max(limit, 0)]

    def __len__(self) -> int:
        return len(self._events)


class RedisEventStore:
    """Redis-backed event log.

    Key pattern:
        yamlpilot:events                 all events, newest first
        yamlpilot:events:repo:{owner/name}   per-repository events
    """

    backend = "redis"

    def __init__(self, client: redis.Redis, max_events: int = 500) -> None:
        self._redis = client
        self._max_events = max_events

    @classmethod
    def from_url(cls, url: str, max_events: int = 500) -> RedisEventStore:
        return cls(redis.Redis.from_url(url, decode_responses=True), max_events=max_events)

    @staticmethod
    def _repo_key(repository: str) -> str:
        return f"{_KEY_PREFIX}:repo:{repository}"

    def append(self, record: WebhookEventRecord) -> WebhookEventRecord:
        data = record.model_dump_json()
        pipe = self._redis.pipeline()
        for key in (_KEY_PREFIX, self._repo_key(record.repository)):
            pipe.lpush(key, data)
            pipe.ltrim(key, 0, self._max_events - 1)
        pipe.execute()
        return record

    def _read(self, key: str, limit: int) -> list[WebhookEventRecord]:
        if limit <= 0:
            return []
        records = []
        for raw in self._redis.lrange(key, 0, limit - 1):
            try:
                records.append(WebhookEventRecord.model_validate_json(raw))
            except ValueError:
                logger.warning("Skipping unreadable event record in %s", key)
        return records

    def list(self, limit: int = DEFAULT_LIMIT) -> list[WebhookEventRecord]:
        return self._read(_KEY_PREFIX, limit)

    def list_by_repository(self, repository: str, limit: int = DEFAULT_LIMIT) -> list[WebhookEventRecord]:
        return self._read(self._repo_key(repository), limit)


def build_event_store(settings: Settings) -> EventStore:
    """Pick the event store backend from settings.redis_url."""
    if settings.redis_url:
        logger.info("Event store: redis (limit=%d)", settings.event_history_limit)
        return RedisEventStore.from_url(settings.redis_url, max_events=settings.event_history_limit)
    logger.info("Event store: memory (limit=%d)", settings.event_history_limit)
    return MemoryEventStore(max_events=settings.event_history_limit)
