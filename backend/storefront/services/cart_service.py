from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

from storefront.core.config import Settings
from storefront.core.currency import format_price
from storefront.infrastructure.observability import MetricsCollector
from storefront.infrastructure.persistence_scheduler import DebouncedWriter, TimerFactory, thread_timer
from storefront.infrastructure.snapshot_storage import SnapshotStorage
from storefront.services.product_hydrator import ProductHydrator
from storefront.store.cart_ledger import CartLedger, CartLine, ProductId

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class CartService:
    """The cart store: ledger, durable snapshot, and product hydration.

    Lifecycle is ``start()`` (load the persisted snapshot), any number of
    mutations, then ``dispose()`` (flush the pending write, stop fetching).
    Every effective mutation notifies subscribers, arms the debounced
    snapshot write, and hands the hydrator the product ids whenever the set
    of distinct ids changed. None of the public methods raise on bad input
    or on storage and lookup failures.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        ledger: CartLedger,
        storage: SnapshotStorage,
        hydrator: ProductHydrator,
        metrics: MetricsCollector | None = None,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self.settings = settings
        self.ledger = ledger
        self.storage = storage
        self.hydrator = hydrator
        self.metrics = metrics
        self.hydrator.on_update = self._on_products_loaded
        self.scheduler: DebouncedWriter[list[dict[str, Any]]] = DebouncedWriter(
            source=self.ledger.snapshot,
            sink=self.storage.save,
            delay_seconds=settings.cart_persist_debounce_seconds,
            timer_factory=timer_factory,
            on_result=self._record_persist,
        )
        self._listeners: list[Listener] = []
        self._tracked_ids: frozenset[ProductId] = frozenset()
        self._started = False
        self._disposed = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def disposed(self) -> bool:
        return self._disposed

    def start(self) -> int:
        if self._started:
            return len(self.ledger)
        rows = self.storage.load()
        with self.ledger.lock:
            self._started = True
            if rows:
                kept = self.ledger.restore(rows)
                logger.info("Restored %d cart lines from %r", kept, self.storage.key)
                self._after_change(persist=kept != len(rows))
            return len(self.ledger)

    def dispose(self) -> None:
        with self.ledger.lock:
            if self._disposed:
                return
            self._disposed = True
            self._listeners.clear()
        self.scheduler.flush()
        self.hydrator.close(wait_for_pending=False)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self.ledger.lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self.ledger.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def add_line(
        self,
        product_id: ProductId,
        variant: Mapping[str, Any] | None,
        quantity: int,
        unit_price: float,
        metadata: Mapping[str, Any] | None = None,
    ) -> bool:
        with self.ledger.lock:
            changed = self.ledger.add_line(product_id, variant, quantity, unit_price, metadata)
            if changed:
                self._after_change()
            return changed

    def add_bundle(
        self, bundle_id: str | int, bundle_name: str, items: Iterable[Mapping[str, Any]]
    ) -> int:
        added = 0
        with self.ledger.lock:
            for item in items:
                product_id = item.get("productId")
                if product_id is None:
                    continue
                metadata = dict(item.get("metadata") or {})
                metadata.update({"bundleId": bundle_id, "bundleName": bundle_name})
                if self.ledger.add_line(
                    product_id,
                    item.get("variant"),
                    item.get("quantity", 1),
                    item.get("price", 0),
                    metadata,
                ):
                    added += 1
            if added:
                self._after_change()
        return added

    def remove_line(self, product_id: ProductId, variant: Mapping[str, Any] | None = None) -> bool:
        with self.ledger.lock:
            changed = self.ledger.remove_line(product_id, variant)
            if changed:
                self._after_change()
            return changed

    def set_quantity(
        self, product_id: ProductId, variant: Mapping[str, Any] | None, quantity: int
    ) -> bool:
        with self.ledger.lock:
            changed = self.ledger.set_quantity(product_id, variant, quantity)
            if changed:
                self._after_change()
            return changed

    def clear(self) -> bool:
        with self.ledger.lock:
            changed = self.ledger.clear()
            if changed:
                self._after_change()
            return changed

    def total_items(self) -> int:
        return self.ledger.total_items()

    def total_price(self) -> float:
        return self.ledger.total_price()

    def contains(self, product_id: ProductId, variant: Mapping[str, Any] | None = None) -> bool:
        return self.ledger.contains(product_id, variant)

    def lines(self) -> tuple[CartLine, ...]:
        return self.ledger.lines()

    def lines_with_products(self) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for line in self.ledger.lines():
            row = line.to_dict()
            row["lineTotal"] = line.line_total
            row["product"] = self.hydrator.get(line.product_id)
            rows.append(row)
        return rows

    def summary(self) -> dict[str, Any]:
        with self.ledger.lock:
            items = self.lines_with_products()
            subtotal = self.ledger.total_price()
            total_items = self.ledger.total_items()
        shipping = self.shipping_for(subtotal)
        total = subtotal + shipping
        symbol = self.settings.currency_symbol
        return {
            "items": items,
            "totalItems": total_items,
            "subtotal": subtotal,
            "shipping": shipping,
            "total": total,
            "currency": symbol,
            "formattedSubtotal": format_price(subtotal, symbol),
            "formattedTotal": format_price(total, symbol),
        }

    def shipping_for(self, subtotal: float) -> float:
        if subtotal <= 0 or subtotal >= self.settings.free_shipping_threshold:
            return 0
        return self.settings.standard_shipping_fee

    def wait_for_products(self, timeout: float | None = None) -> bool:
        return self.hydrator.wait(timeout)

    def wait_for_persistence(self, timeout: float | None = None) -> bool:
        return self.scheduler.wait(timeout)

    def _after_change(self, persist: bool = True) -> None:
        if self._disposed:
            logger.warning("Cart changed after dispose; change is kept in memory only")
            return
        product_ids = self.ledger.product_ids()
        distinct = frozenset(product_ids)
        if distinct != self._tracked_ids:
            self._tracked_ids = distinct
            if distinct:
                self.hydrator.sync(product_ids)
            else:
                self.hydrator.evict_all()
        if persist:
            self.scheduler.schedule()
        self._notify()

    def _on_products_loaded(self, _: frozenset[ProductId]) -> None:
        self._notify()

    def _notify(self) -> None:
        with self.ledger.lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception as exc:
                logger.warning("Cart listener failed", exc_info=exc)

    def _record_persist(self, success: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_cart_persist(success=success)
