"""Webhook delivery de-duplication.

Security contract:
- Tracks X-GitHub-Delivery IDs with a 24h TTL
- Duplicate deliveries are answered 200 (GitHub retries on errors)
- Key pattern: yamlpilot:webhook:seen:{delivery_id}
- If Redis is down, falls back to allowing (fail-open for availability)
"""

from __future__ import annotations

import logging
import threading
import time

import redis

logger = logging.getLogger(__name__)

_DEDUP_TTL_SECONDS = 86400  # 24 hours

_KEY_PREFIX = "yamlpilot:webhook:seen"


class DeliveryDeduplicator:
    """Atomic check-and-mark of delivery IDs.

    Uses Redis SET NX EX when a client is given, otherwise a process-local
    map with the same TTL.
    """

    def __init__(self, client: redis.Redis | None = None, ttl_seconds: int = _DEDUP_TTL_SECONDS) -> None:
        self._redis = client
        self._ttl = ttl_seconds
        self._seen: dict[str, float] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, url: str) -> DeliveryDeduplicator:
        if not url:
            return cls()
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def is_duplicate(self, delivery_id: str) -> bool:
        """Check if this delivery has already been seen, marking it if not.

        Returns:
            True if this delivery is a duplicate
        """
        if not delivery_id:
            return False  # No ID = can't dedup, allow through

        if self._redis is None:
            return self._is_duplicate_local(delivery_id)

        key = f"{_KEY_PREFIX}:{delivery_id}"
        try:
            # SET NX returns True if key was set (new), None if it already existed
            was_set = self._redis.set(key, "1", nx=True, ex=self._ttl)
        except redis.RedisError:
            logger.warning(
                "Redis unavailable for webhook dedup, allowing delivery %s",
                delivery_id,
                exc_info=True,
            )
            return False
        if not was_set:
            logger.info("Duplicate webhook delivery rejected: %s", delivery_id)
            return True
        return False

    def _is_duplicate_local(self, delivery_id: str) -> bool:
        now = time.monotonic()
        with self._lock:
            expired = [k for k, exp in self._seen.items() if exp <= now]
            for k in expired:
                del self._seen[k]
            if delivery_id in self._seen:
                logger.info("Duplicate webhook delivery rejected: %s", delivery_id)
                return True
            self._seen[delivery_id] = now + self._ttl
        return False
