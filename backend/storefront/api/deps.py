from __future__ import annotations

from fastapi import Depends, Request

from storefront.container import Container
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.services.product_service import ProductService
from storefront.services.recently_viewed_service import RecentlyViewedService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_cart_service(container: Container = Depends(get_container)) -> CartService:
    return container.cart_service


def get_notification_service(container: Container = Depends(get_container)) -> NotificationService:
    return container.notification_service


def get_product_service(container: Container = Depends(get_container)) -> ProductService:
    return container.product_service


def get_recently_viewed_service(
    container: Container = Depends(get_container),
) -> RecentlyViewedService:
    return container.recently_viewed_service
