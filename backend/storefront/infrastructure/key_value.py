from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any, Protocol

from storefront.infrastructure.persistence_clients import RedisClientManager


class StorageQuotaExceededError(RuntimeError):
    pass


class StorageUnavailableError(RuntimeError):
    pass


class KeyValueBackend(Protocol):
    name: str

    @property
    def status(self) -> str: ...

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def _check_quota(key: str, value: str, max_value_bytes: int | None) -> None:
    if max_value_bytes is None:
        return
    size = len(value.encode("utf-8"))
    if size > max_value_bytes:
        raise StorageQuotaExceededError(
            f"Value for {key!r} is {size} bytes, limit is {max_value_bytes}"
        )


class InMemoryKeyValueStore:
    name = "memory"

    def __init__(self, max_value_bytes: int | None = None) -> None:
        self._lock = Lock()
        self._values: dict[str, str] = {}
        self.max_value_bytes = max_value_bytes

    @property
    def status(self) -> str:
        return "connected"

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        _check_quota(key, value, self.max_value_bytes)
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)


class JsonFileKeyValueStore:
    """All keys live in one JSON object on disk, replaced atomically on write."""

    name = "file"

    def __init__(self, path: str | Path, max_value_bytes: int | None = None) -> None:
        self.path = Path(path)
        self.max_value_bytes = max_value_bytes
        self._lock = Lock()

    @property
    def status(self) -> str:
        directory = self.path.parent
        if directory.exists() and not os.access(directory, os.W_OK):
            return "unavailable"
        return "connected"

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        _check_quota(key, value, self.max_value_bytes)
        with self._lock:
            values = self._read_all()
            values[key] = value
            self._write_all(values)

    def delete(self, key: str) -> None:
        with self._lock:
            values = self._read_all()
            if key not in values:
                return
            values.pop(key)
            self._write_all(values)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            # A torn or hand-edited file only loses the unreadable content.
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write_all(self, values: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(values, handle)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise


class RedisKeyValueStore:
    name = "redis"

    def __init__(self, redis_manager: RedisClientManager, namespace: str = "storefront") -> None:
        self.redis_manager = redis_manager
        self.namespace = namespace

    @property
    def status(self) -> str:
        return self.redis_manager.status

    def get(self, key: str) -> str | None:
        value = self._client().get(self._redis_key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self._client().set(self._redis_key(key), value)

    def delete(self, key: str) -> None:
        self._client().delete(self._redis_key(key))

    def _client(self) -> Any:
        client = self.redis_manager.ensure_client()
        if client is None:
            raise StorageUnavailableError(
                self.redis_manager.error or "Redis client is not connected"
            )
        return client

    def _redis_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"
