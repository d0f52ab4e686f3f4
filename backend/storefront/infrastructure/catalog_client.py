from __future__ import annotations

from typing import Any

import httpx

from storefront.core.config import Settings


class CatalogClient:
    """Product lookups against a remote catalog exposing ``GET /products/{id}``."""

    def __init__(self, settings: Settings, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings
        self._client = httpx.Client(
            base_url=settings.product_catalog_url.rstrip("/"),
            timeout=settings.product_fetch_timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.settings.product_catalog_url.strip())

    def get_by_id(self, product_id: str | int) -> dict[str, Any] | None:
        try:
            response = self._client.get(f"/products/{product_id}")
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Catalog request for {product_id!r} failed: {exc}") from exc
        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RuntimeError(f"Catalog request for {product_id!r} failed: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise RuntimeError("Catalog response is not valid JSON") from exc
        return self._extract_product(payload)

    def close(self) -> None:
        self._client.close()

    def _extract_product(self, payload: Any) -> dict[str, Any] | None:
        if not isinstance(payload, dict):
            return None
        for key in ("product", "data"):
            nested = payload.get(key)
            if isinstance(nested, dict):
                return nested
        return payload
