from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from storefront.api.deps import get_cart_service, get_notification_service, get_product_service
from storefront.models.schemas import (
    AddBundleRequest,
    AddCartLineRequest,
    RemoveCartLineRequest,
    UpdateCartLineRequest,
)
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("")
def get_cart(cart_service: CartService = Depends(get_cart_service)) -> dict[str, Any]:
    return cart_service.summary()


@router.post("/items", status_code=201)
def add_item(
    payload: AddCartLineRequest,
    cart_service: CartService = Depends(get_cart_service),
    notifications: NotificationService = Depends(get_notification_service),
    product_service: ProductService = Depends(get_product_service),
) -> dict[str, Any]:
    changed = cart_service.add_line(
        payload.productId,
        payload.variant,
        payload.quantity,
        payload.price,
        payload.metadata,
    )
    if changed:
        title = _line_title(payload.productId, payload.metadata, cart_service, product_service)
        notifications.notify(f"{title} added to cart!", "success")
    return cart_service.summary()


@router.patch("/items")
def update_item(
    payload: UpdateCartLineRequest,
    cart_service: CartService = Depends(get_cart_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    if cart_service.set_quantity(payload.productId, payload.variant, payload.quantity):
        message = "Cart updated" if payload.quantity > 0 else "Item removed from cart"
        notifications.notify(message, "success")
    return cart_service.summary()


@router.post("/items/remove")
def remove_item(
    payload: RemoveCartLineRequest,
    cart_service: CartService = Depends(get_cart_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    if cart_service.remove_line(payload.productId, payload.variant):
        notifications.notify("Item removed from cart", "success")
    return cart_service.summary()


@router.get("/contains")
def contains_item(
    productId: str = Query(min_length=1),
    variant: str | None = Query(default=None),
    cart_service: CartService = Depends(get_cart_service),
) -> dict[str, bool]:
    parsed_variant = _parse_variant(variant)
    candidates: list[Any] = [productId]
    if productId.isdigit():
        candidates.append(int(productId))
    in_cart = any(cart_service.contains(candidate, parsed_variant) for candidate in candidates)
    return {"inCart": in_cart}


@router.post("/bundles", status_code=201)
def add_bundle(
    payload: AddBundleRequest,
    cart_service: CartService = Depends(get_cart_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    added = cart_service.add_bundle(
        payload.bundleId,
        payload.bundleName,
        [item.model_dump() for item in payload.items],
    )
    if added:
        notifications.notify(f"{payload.bundleName} bundle added to cart!", "success")
    return cart_service.summary()


@router.delete("")
def clear_cart(
    cart_service: CartService = Depends(get_cart_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    if cart_service.clear():
        notifications.notify("Cart cleared", "success")
    return cart_service.summary()


def _parse_variant(raw: str | None) -> dict[str, Any] | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="variant must be a JSON object") from exc
    if value is not None and not isinstance(value, dict):
        raise HTTPException(status_code=400, detail="variant must be a JSON object")
    return value


def _line_title(
    product_id: Any,
    metadata: dict[str, Any],
    cart_service: CartService,
    product_service: ProductService,
) -> str:
    title = metadata.get("title") or metadata.get("name")
    if title:
        return str(title)
    cached = cart_service.hydrator.get(product_id) or {}
    return cached.get("title") or product_service.find_title(product_id) or "Product"
