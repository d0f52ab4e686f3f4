from __future__ import annotations

from fastapi import APIRouter, Depends

from storefront.api.deps import get_recently_viewed_service
from storefront.models.schemas import RecentlyViewedRequest
from storefront.services.recently_viewed_service import RecentlyViewedService

router = APIRouter(prefix="/recently-viewed", tags=["recently-viewed"])


@router.get("")
def list_recently_viewed(
    service: RecentlyViewedService = Depends(get_recently_viewed_service),
) -> dict[str, object]:
    return {"productIds": service.list_product_ids()}


@router.post("", status_code=201)
def record_recently_viewed(
    payload: RecentlyViewedRequest,
    service: RecentlyViewedService = Depends(get_recently_viewed_service),
) -> dict[str, object]:
    return {"productIds": service.record(payload.productId)}


@router.delete("")
def clear_recently_viewed(
    service: RecentlyViewedService = Depends(get_recently_viewed_service),
) -> dict[str, object]:
    service.clear()
    return {"productIds": []}
