from __future__ import annotations

import logging
from copy import deepcopy
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from functools import partial
from threading import Lock
from typing import Any, Callable, Iterable, Protocol

from storefront.infrastructure.observability import MetricsCollector
from storefront.store.cart_ledger import ProductId

logger = logging.getLogger(__name__)


class ProductLookup(Protocol):
    def get_by_id(self, product_id: ProductId) -> dict[str, Any] | None: ...


class _Batch:
    def __init__(self, product_ids: list[ProductId]) -> None:
        self.product_ids = product_ids
        self.results: dict[ProductId, dict[str, Any]] = {}
        self.future: Future[dict[ProductId, dict[str, Any]]] = Future()
        self._remaining = len(product_ids)
        self._lock = Lock()

    def settle(self, product_id: ProductId, product: dict[str, Any] | None) -> bool:
        """Record one outcome; returns True for the last one."""
        with self._lock:
            if product is not None:
                self.results[product_id] = product
            self._remaining -= 1
            return self._remaining == 0


class ProductHydrator:
    """Resolves cart product ids to product records, fetching each id once.

    ``sync`` starts one batch for the ids that are neither cached nor already
    being fetched. The lookups of a batch run concurrently; failures are logged
    and skipped, and the successful results are merged into the cache in a
    single update once every lookup has settled.
    """

    def __init__(
        self,
        lookup: ProductLookup,
        *,
        max_workers: int = 8,
        executor: Executor | None = None,
        metrics: MetricsCollector | None = None,
        on_update: Callable[[frozenset[ProductId]], None] | None = None,
    ) -> None:
        self.lookup = lookup
        self.metrics = metrics
        self.on_update = on_update
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="product-hydrator"
        )
        self._lock = Lock()
        self._cache: dict[ProductId, dict[str, Any]] = {}
        self._in_flight: set[ProductId] = set()
        self._batches: set[Future[dict[ProductId, dict[str, Any]]]] = set()

    def get(self, product_id: ProductId) -> dict[str, Any] | None:
        with self._lock:
            product = self._cache.get(product_id)
            return deepcopy(product) if product is not None else None

    def cached_ids(self) -> frozenset[ProductId]:
        with self._lock:
            return frozenset(self._cache)

    def in_flight_ids(self) -> frozenset[ProductId]:
        with self._lock:
            return frozenset(self._in_flight)

    def sync(self, product_ids: Iterable[ProductId]) -> Future[dict[ProductId, dict[str, Any]]] | None:
        with self._lock:
            missing = [
                product_id
                for product_id in dict.fromkeys(product_ids)
                if product_id not in self._cache and product_id not in self._in_flight
            ]
            if not missing:
                return None
            batch = _Batch(missing)
            self._in_flight.update(missing)
            self._batches.add(batch.future)

        for product_id in missing:
            try:
                future = self._executor.submit(self.lookup.get_by_id, product_id)
            except RuntimeError as exc:
                logger.warning("Could not schedule lookup for product %r", product_id, exc_info=exc)
                self._record("failed")
                if batch.settle(product_id, None):
                    self._merge(batch)
                continue
            future.add_done_callback(partial(self._settle, batch, product_id))
        return batch.future

    def evict_all(self) -> int:
        with self._lock:
            evicted = len(self._cache)
            self._cache = {}
        if evicted:
            logger.debug("Evicted %d cached products", evicted)
        return evicted

    def wait(self, timeout: float | None = None) -> bool:
        with self._lock:
            pending = list(self._batches)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self, wait_for_pending: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait_for_pending)

    def _settle(self, batch: _Batch, product_id: ProductId, future: Future[dict[str, Any] | None]) -> None:
        product: dict[str, Any] | None = None
        try:
            product = future.result()
        except Exception as exc:
            logger.warning("Failed to load product %r", product_id, exc_info=exc)
            self._record("failed")
        else:
            if product is None:
                logger.warning("Product %r is not available", product_id)
                self._record("missing")
            else:
                self._record("success")
        if batch.settle(product_id, product):
            self._merge(batch)

    def _merge(self, batch: _Batch) -> None:
        with self._lock:
            self._in_flight.difference_update(batch.product_ids)
            self._cache.update(batch.results)
        if batch.results and self.on_update is not None:
            try:
                self.on_update(frozenset(batch.results))
            except Exception as exc:
                logger.warning("Product cache listener failed", exc_info=exc)
        batch.future.set_result(dict(batch.results))
        with self._lock:
            self._batches.discard(batch.future)

    def _record(self, result: str) -> None:
        if self.metrics is not None:
            self.metrics.record_product_fetch(result=result)
