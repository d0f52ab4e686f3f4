from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from time import monotonic
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class RedisClientManager:
    """Owns the redis connection used by the durable storage backend.

    A failed connection is retried from ``ensure_client`` at most once per
    ``retry_interval_seconds``, and only after ``connect`` has been called.
    Request threads and the debounce timer share one manager, so connection
    state only changes under ``_lock``.
    """

    url: str
    enabled: bool
    retry_interval_seconds: float = 30.0
    _client: Any = None
    _last_error: str | None = None
    _last_attempt: float | None = None
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def connect(self) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._connect_locked()

    def ensure_client(self) -> Any:
        with self._lock:
            if self._client is None and self._retry_due():
                self._connect_locked()
            return self._client

    def close(self) -> None:
        with self._lock:
            client = self._client
            self._client = None
        if client is None:
            return
        try:
            client.close()
        except Exception as exc:
            logger.warning("Failed to close Redis client", exc_info=exc)

    @property
    def status(self) -> str:
        if not self.enabled:
            return "disabled"
        if self._client is None:
            return "unavailable"
        return "connected"

    @property
    def error(self) -> str | None:
        return self._last_error

    def _connect_locked(self) -> None:
        self._last_attempt = monotonic()
        try:
            import redis

            client = redis.from_url(self.url, socket_timeout=2, decode_responses=True)
            client.ping()
        except Exception as exc:
            logger.warning("Redis unavailable at %s", self.url, exc_info=exc)
            self._client = None
            self._last_error = str(exc)
            return
        self._client = client
        self._last_error = None

    def _retry_due(self) -> bool:
        if not self.enabled or self._last_attempt is None:
            return False
        return monotonic() - self._last_attempt >= self.retry_interval_seconds
