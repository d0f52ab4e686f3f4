from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, Field

ProductIdField = Union[int, str]


class CartLineRef(BaseModel):
    productId: ProductIdField
    variant: dict[str, Any] | None = None


class AddCartLineRequest(CartLineRef):
    quantity: int = Field(default=1, ge=1, le=999)
    price: float = Field(ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class UpdateCartLineRequest(CartLineRef):
    quantity: int = Field(le=999)


class RemoveCartLineRequest(CartLineRef):
    pass


class AddBundleRequest(BaseModel):
    bundleId: ProductIdField
    bundleName: str = Field(min_length=1, max_length=200)
    items: list[AddCartLineRequest] = Field(min_length=1, max_length=50)


class RecentlyViewedRequest(BaseModel):
    productId: ProductIdField
