from __future__ import annotations

import os
from dataclasses import dataclass


_STORAGE_BACKENDS = {"memory", "file", "redis"}


@dataclass(frozen=True)
class Settings:
    app_name: str = "Storefront Cart API"
    api_prefix: str = "/v1"
    cors_origins: str = "http://localhost:5173"
    log_level: str = "INFO"
    storage_backend: str = "memory"
    storage_path: str = ".storefront/storage.json"
    redis_url: str = "redis://localhost:6379/0"
    enable_external_services: bool = False
    cart_storage_key: str = "bazaarpk-cart"
    recently_viewed_storage_key: str = "bazaarpk-recently-viewed"
    recently_viewed_limit: int = 12
    cart_persist_debounce_ms: int = 100
    product_catalog_url: str = ""
    product_fetch_timeout_seconds: float = 5.0
    product_fetch_max_workers: int = 8
    free_shipping_threshold: float = 1000.0
    standard_shipping_fee: float = 150.0
    currency_symbol: str = "Rs"

    @property
    def cors_origin_list(self) -> list[str]:
        origins = [value.strip() for value in self.cors_origins.split(",")]
        return [value for value in origins if value]

    @property
    def cart_persist_debounce_seconds(self) -> float:
        return max(0, self.cart_persist_debounce_ms) / 1000.0

    @property
    def resolved_storage_backend(self) -> str:
        backend = self.storage_backend.strip().lower()
        if backend not in _STORAGE_BACKENDS:
            return "memory"
        if backend == "redis" and not self.enable_external_services:
            return "memory"
        return backend

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            api_prefix=os.getenv("API_PREFIX", cls.api_prefix),
            cors_origins=os.getenv("CORS_ORIGINS", cls.cors_origins),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            storage_backend=os.getenv("STORAGE_BACKEND", cls.storage_backend),
            storage_path=os.getenv("STORAGE_PATH", cls.storage_path),
            redis_url=os.getenv("REDIS_URL", cls.redis_url),
            enable_external_services=os.getenv("ENABLE_EXTERNAL_SERVICES", "false").lower()
            in {"1", "true", "yes"},
            cart_storage_key=os.getenv("CART_STORAGE_KEY", cls.cart_storage_key),
            recently_viewed_storage_key=os.getenv(
                "RECENTLY_VIEWED_STORAGE_KEY", cls.recently_viewed_storage_key
            ),
            recently_viewed_limit=int(
                os.getenv("RECENTLY_VIEWED_LIMIT", str(cls.recently_viewed_limit))
            ),
            cart_persist_debounce_ms=int(
                os.getenv("CART_PERSIST_DEBOUNCE_MS", str(cls.cart_persist_debounce_ms))
            ),
            product_catalog_url=os.getenv("PRODUCT_CATALOG_URL", cls.product_catalog_url),
            product_fetch_timeout_seconds=float(
                os.getenv(
                    "PRODUCT_FETCH_TIMEOUT_SECONDS",
                    str(cls.product_fetch_timeout_seconds),
                )
            ),
            product_fetch_max_workers=int(
                os.getenv("PRODUCT_FETCH_MAX_WORKERS", str(cls.product_fetch_max_workers))
            ),
            free_shipping_threshold=float(
                os.getenv("FREE_SHIPPING_THRESHOLD", str(cls.free_shipping_threshold))
            ),
            standard_shipping_fee=float(
                os.getenv("STANDARD_SHIPPING_FEE", str(cls.standard_shipping_fee))
            ),
            currency_symbol=os.getenv("CURRENCY_SYMBOL", cls.currency_symbol),
        )
