from __future__ import annotations

from copy import deepcopy
from threading import RLock
from typing import Any, Iterable


class CatalogRepository:
    """Seeded in-memory product catalog used when no remote catalog is configured."""

    def __init__(self, products: Iterable[dict[str, Any]] | None = None) -> None:
        self.lock = RLock()
        rows = list(products) if products is not None else self._seed_products()
        self._products_by_id: dict[str, dict[str, Any]] = {
            str(item["Id"]): deepcopy(item) for item in rows
        }

    def get_by_id(self, product_id: str | int) -> dict[str, Any] | None:
        with self.lock:
            product = self._products_by_id.get(str(product_id))
            return deepcopy(product) if product is not None else None

    @staticmethod
    def _seed_products() -> list[dict[str, Any]]:
        return [
            {
                "Id": 1,
                "title": "Basmati Rice Premium",
                "category": "grains",
                "price": 120,
                "oldPrice": 150,
                "stock": 140,
                "images": ["https://cdn.example.com/products/1/main.jpg"],
                "variants": [
                    {"size": "1kg", "price": 120},
                    {"size": "5kg", "price": 560, "oldPrice": 600},
                ],
                "isVisible": True,
                "featured": True,
            },
            {
                "Id": 2,
                "title": "Cotton Kurta",
                "category": "clothing",
                "price": 2400,
                "oldPrice": 2900,
                "stock": 35,
                "images": ["https://cdn.example.com/products/2/main.jpg"],
                "variants": [
                    {"size": "M", "price": 2400},
                    {"size": "L", "price": 2400},
                    {"size": "XL", "price": 2550},
                ],
                "isVisible": True,
                "featured": False,
            },
            {
                "Id": 3,
                "title": "Desi Ghee",
                "category": "dairy",
                "price": 850,
                "oldPrice": None,
                "stock": 8,
                "images": ["https://cdn.example.com/products/3/main.jpg"],
                "variants": [
                    {"size": "500g", "price": 850},
                    {"size": "1kg", "pack": 2, "price": 3100},
                ],
                "isVisible": True,
                "featured": True,
            },
            {
                "Id": 4,
                "title": "Fresh Tomatoes",
                "category": "vegetables",
                "price": 90,
                "oldPrice": 110,
                "stock": 0,
                "images": ["https://cdn.example.com/products/4/main.jpg"],
                "variants": [],
                "isVisible": True,
                "featured": False,
            },
            {
                "Id": 5,
                "title": "Chicken Karahi Masala",
                "category": "spices",
                "price": 140,
                "oldPrice": None,
                "stock": 220,
                "images": ["https://cdn.example.com/products/5/main.jpg"],
                "variants": [{"pack": 1, "price": 140}, {"pack": 6, "price": 780}],
                "isVisible": True,
                "featured": False,
            },
            {
                "Id": 6,
                "title": "Green Tea Box",
                "category": "beverages",
                "price": 450,
                "oldPrice": 520,
                "stock": 60,
                "images": ["https://cdn.example.com/products/6/main.jpg"],
                "variants": [],
                "isVisible": True,
                "featured": True,
            },
        ]
