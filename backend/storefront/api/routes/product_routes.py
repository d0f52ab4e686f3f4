from __future__ import annotations

from fastapi import APIRouter, Depends

from storefront.api.deps import get_product_service
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/{product_id}")
def get_product(
    product_id: str,
    product_service: ProductService = Depends(get_product_service),
) -> dict[str, object]:
    return product_service.get_product(product_id=product_id)
