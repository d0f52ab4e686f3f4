from __future__ import annotations

from threading import Lock

from storefront.infrastructure.snapshot_storage import SnapshotStorage
from storefront.store.cart_ledger import ProductId


class RecentlyViewedService:
    """Most-recent-first list of viewed product ids, persisted on every change."""

    def __init__(self, storage: SnapshotStorage, limit: int = 12) -> None:
        self.storage = storage
        self.limit = max(1, limit)
        self._lock = Lock()
        self._product_ids: list[ProductId] = []

    def start(self) -> None:
        rows = self.storage.load() or []
        valid = [
            row for row in rows if isinstance(row, (str, int)) and not isinstance(row, bool)
        ]
        with self._lock:
            self._product_ids = list(dict.fromkeys(valid))[: self.limit]

    def record(self, product_id: ProductId) -> list[ProductId]:
        with self._lock:
            ordered = [product_id] + [item for item in self._product_ids if item != product_id]
            self._product_ids = ordered[: self.limit]
            snapshot = list(self._product_ids)
        self.storage.save(snapshot)
        return snapshot

    def list_product_ids(self) -> list[ProductId]:
        with self._lock:
            return list(self._product_ids)

    def clear(self) -> None:
        with self._lock:
            self._product_ids = []
        self.storage.remove()
