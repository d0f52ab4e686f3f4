from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from threading import Barrier, Thread
from typing import Any

import pytest
import redis

from storefront.infrastructure.key_value import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    RedisKeyValueStore,
    StorageQuotaExceededError,
)
from storefront.infrastructure.persistence_clients import RedisClientManager
from storefront.infrastructure.snapshot_storage import SnapshotStorage


class _FakeRedisClient:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.store[key] = value

    def get(self, key: str) -> Any:
        return self.store.get(key)

    def delete(self, key: str) -> None:
        self.store.pop(key, None)

    def ping(self) -> bool:
        return True


class _BrokenBackend:
    name = "broken"
    status = "unavailable"

    def get(self, key: str) -> str | None:
        raise OSError("disk gone")

    def set(self, key: str, value: str) -> None:
        raise OSError("disk gone")

    def delete(self, key: str) -> None:
        raise OSError("disk gone")


def _sample_rows() -> list[dict[str, Any]]:
    return [
        {"productId": 1, "variant": None, "quantity": 2, "price": 120, "metadata": {}},
        {"productId": 2, "variant": {"size": "L"}, "quantity": 1, "price": 2400, "metadata": {}},
    ]


def test_load_returns_none_when_key_is_absent() -> None:
    storage = SnapshotStorage(InMemoryKeyValueStore(), "bazaarpk-cart")

    assert storage.load() is None


def test_save_then_load_in_memory() -> None:
    backend = InMemoryKeyValueStore()
    storage = SnapshotStorage(backend, "bazaarpk-cart")

    assert storage.save(_sample_rows()) is True
    assert storage.load() == _sample_rows()
    assert json.loads(backend.get("bazaarpk-cart") or "[]")[1]["variant"] == {"size": "L"}


def test_unparsable_or_wrong_shape_loads_as_none(caplog: pytest.LogCaptureFixture) -> None:
    backend = InMemoryKeyValueStore()
    storage = SnapshotStorage(backend, "bazaarpk-cart")

    backend.set("bazaarpk-cart", "{not json")
    with caplog.at_level(logging.WARNING):
        assert storage.load() is None
    assert "unreadable snapshot" in caplog.text

    backend.set("bazaarpk-cart", json.dumps({"items": []}))
    assert storage.load() is None


def test_backend_failures_never_raise(caplog: pytest.LogCaptureFixture) -> None:
    storage = SnapshotStorage(_BrokenBackend(), "bazaarpk-cart")

    with caplog.at_level(logging.WARNING):
        assert storage.load() is None
        assert storage.save(_sample_rows()) is False
        assert storage.remove() is False
    assert "Failed to save" in caplog.text


def test_quota_exceeded_is_reported_not_raised() -> None:
    backend = InMemoryKeyValueStore(max_value_bytes=32)
    storage = SnapshotStorage(backend, "bazaarpk-cart")

    with pytest.raises(StorageQuotaExceededError):
        backend.set("bazaarpk-cart", "x" * 64)
    assert storage.save(_sample_rows()) is False
    assert storage.load() is None


def test_file_backend_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "state" / "storage.json"
    first = SnapshotStorage(JsonFileKeyValueStore(path), "bazaarpk-cart")
    other_key = SnapshotStorage(JsonFileKeyValueStore(path), "bazaarpk-recently-viewed")

    assert first.save(_sample_rows()) is True
    assert other_key.save([3, 1]) is True

    reopened = SnapshotStorage(JsonFileKeyValueStore(path), "bazaarpk-cart")
    assert reopened.load() == _sample_rows()
    assert other_key.load() == [3, 1]

    assert reopened.remove() is True
    assert reopened.load() is None
    assert other_key.load() == [3, 1]
    assert [item.name for item in path.parent.iterdir()] == ["storage.json"]


def test_file_backend_treats_corrupt_file_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    path.write_text("{torn", encoding="utf-8")
    storage = SnapshotStorage(JsonFileKeyValueStore(path), "bazaarpk-cart")

    assert storage.load() is None
    assert storage.save(_sample_rows()) is True
    assert storage.load() == _sample_rows()


def test_redis_backend_namespaces_keys() -> None:
    manager = RedisClientManager(url="redis://localhost:6379/0", enabled=True)
    fake = _FakeRedisClient()
    manager._client = fake
    backend = RedisKeyValueStore(manager)
    storage = SnapshotStorage(backend, "bazaarpk-cart")

    assert backend.status == "connected"
    assert storage.save(_sample_rows()) is True
    assert "storefront:bazaarpk-cart" in fake.store
    assert storage.load() == _sample_rows()
    assert storage.remove() is True
    assert fake.store == {}


def test_redis_backend_without_connection_degrades() -> None:
    manager = RedisClientManager(url="redis://localhost:6379/0", enabled=True)
    storage = SnapshotStorage(RedisKeyValueStore(manager), "bazaarpk-cart")

    assert manager.status == "unavailable"
    assert storage.save(_sample_rows()) is False
    assert storage.load() is None


def test_redis_manager_reconnects_after_retry_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeRedisClient()
    attempts: list[str] = []

    def _from_url(url: str, **kwargs: Any) -> _FakeRedisClient:
        attempts.append(url)
        if len(attempts) == 1:
            raise redis.ConnectionError("connection refused")
        return fake

    monkeypatch.setattr(redis, "from_url", _from_url)
    manager = RedisClientManager(url="redis://cache:6379/0", enabled=True, retry_interval_seconds=0.0)
    manager.connect()
    assert manager.status == "unavailable"
    assert manager.error == "connection refused"

    storage = SnapshotStorage(RedisKeyValueStore(manager), "bazaarpk-cart")
    assert storage.save(_sample_rows()) is True
    assert manager.status == "connected"
    assert len(attempts) == 2
    assert "storefront:bazaarpk-cart" in fake.store


def test_concurrent_callers_share_one_reconnect(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeRedisClient()
    attempts: list[str] = []

    def _from_url(url: str, **kwargs: Any) -> _FakeRedisClient:
        attempts.append(url)
        if len(attempts) == 1:
            raise redis.ConnectionError("connection refused")
        time.sleep(0.05)
        return fake

    monkeypatch.setattr(redis, "from_url", _from_url)
    manager = RedisClientManager(url="redis://cache:6379/0", enabled=True, retry_interval_seconds=0.0)
    manager.connect()

    barrier = Barrier(6)
    clients: list[Any] = []

    def _call() -> None:
        barrier.wait()
        clients.append(manager.ensure_client())

    threads = [Thread(target=_call) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(attempts) == 2
    assert clients == [fake] * 6
    assert manager.status == "connected"
