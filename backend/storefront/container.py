from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from storefront.core.config import Settings
from storefront.infrastructure.catalog_client import CatalogClient
from storefront.infrastructure.key_value import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueBackend,
    RedisKeyValueStore,
)
from storefront.infrastructure.observability import MetricsCollector
from storefront.infrastructure.persistence_clients import RedisClientManager
from storefront.infrastructure.persistence_scheduler import TimerFactory, thread_timer
from storefront.infrastructure.snapshot_storage import SnapshotStorage
from storefront.repositories.catalog_repository import CatalogRepository
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.services.product_hydrator import ProductHydrator, ProductLookup
from storefront.services.product_service import ProductService
from storefront.services.recently_viewed_service import RecentlyViewedService
from storefront.store.cart_ledger import CartLedger


@dataclass
class Container:
    settings: Settings
    metrics_collector: MetricsCollector
    redis_manager: RedisClientManager
    storage_backend: KeyValueBackend
    product_lookup: ProductLookup
    cart_service: CartService
    product_service: ProductService
    recently_viewed_service: RecentlyViewedService
    notification_service: NotificationService
    _closables: list[Any] = field(default_factory=list)

    def start(self) -> None:
        self.cart_service.start()
        self.recently_viewed_service.start()

    def close(self) -> None:
        self.cart_service.dispose()
        for closable in self._closables:
            closable.close()


def build_storage_backend(settings: Settings, redis_manager: RedisClientManager) -> KeyValueBackend:
    backend = settings.resolved_storage_backend
    if backend == "file":
        return JsonFileKeyValueStore(settings.storage_path)
    if backend == "redis":
        return RedisKeyValueStore(redis_manager)
    return InMemoryKeyValueStore()


def build_container(
    settings: Settings | None = None,
    *,
    storage_backend: KeyValueBackend | None = None,
    product_lookup: ProductLookup | None = None,
    timer_factory: TimerFactory = thread_timer,
) -> Container:
    settings = settings or Settings.from_env()
    metrics_collector = MetricsCollector()
    redis_manager = RedisClientManager(
        url=settings.redis_url,
        enabled=settings.enable_external_services and settings.resolved_storage_backend == "redis",
    )
    redis_manager.connect()
    closables: list[Any] = [redis_manager]

    backend = storage_backend or build_storage_backend(settings, redis_manager)
    if product_lookup is None:
        if settings.product_catalog_url.strip():
            catalog_client = CatalogClient(settings)
            closables.append(catalog_client)
            product_lookup = catalog_client
        else:
            product_lookup = CatalogRepository()

    hydrator = ProductHydrator(
        product_lookup,
        max_workers=settings.product_fetch_max_workers,
        metrics=metrics_collector,
    )
    cart_service = CartService(
        settings=settings,
        ledger=CartLedger(),
        storage=SnapshotStorage(backend, settings.cart_storage_key),
        hydrator=hydrator,
        metrics=metrics_collector,
        timer_factory=timer_factory,
    )
    recently_viewed_service = RecentlyViewedService(
        SnapshotStorage(backend, settings.recently_viewed_storage_key),
        limit=settings.recently_viewed_limit,
    )
    return Container(
        settings=settings,
        metrics_collector=metrics_collector,
        redis_manager=redis_manager,
        storage_backend=backend,
        product_lookup=product_lookup,
        cart_service=cart_service,
        product_service=ProductService(product_lookup),
        recently_viewed_service=recently_viewed_service,
        notification_service=NotificationService(),
        _closables=closables,
    )
