from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException

from storefront.services.product_hydrator import ProductLookup

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, lookup: ProductLookup) -> None:
        self.lookup = lookup

    def get_product(self, product_id: str) -> dict[str, Any]:
        try:
            product = self.lookup.get_by_id(product_id)
        except Exception as exc:
            logger.warning("Product lookup for %r failed", product_id, exc_info=exc)
            raise HTTPException(status_code=502, detail="Product catalog unavailable") from exc
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        return product

    def find_title(self, product_id: Any) -> str | None:
        """Best-effort display name for toasts; lookup failures yield ``None``."""
        try:
            product = self.lookup.get_by_id(product_id)
        except Exception as exc:
            logger.warning("Product lookup for %r failed", product_id, exc_info=exc)
            return None
        if not product:
            return None
        title = product.get("title") or product.get("name")
        return str(title) if title else None
