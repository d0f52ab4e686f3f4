from __future__ import annotations

import json

from fastapi.testclient import TestClient

from storefront.container import Container, build_container
from storefront.core.config import Settings
from storefront.infrastructure.key_value import InMemoryKeyValueStore
from storefront.main import create_app


def test_add_merges_lines_and_hydrates_products(client: TestClient, container: Container) -> None:
    first = client.post(
        "/v1/cart/items",
        json={"productId": 1, "variant": None, "quantity": 2, "price": 120},
    )
    assert first.status_code == 201

    second = client.post(
        "/v1/cart/items",
        json={"productId": 1, "variant": None, "quantity": 3, "price": 999},
    )
    assert second.status_code == 201
    payload = second.json()
    assert payload["totalItems"] == 5
    assert payload["subtotal"] == 600
    assert len(payload["items"]) == 1
    assert payload["items"][0]["price"] == 120

    assert container.cart_service.wait_for_products(timeout=2)
    cart = client.get("/v1/cart").json()
    assert cart["items"][0]["product"]["title"] == "Basmati Rice Premium"
    assert cart["shipping"] == 150
    assert cart["formattedTotal"] == "Rs 750"


def test_variants_are_distinct_lines_and_contains(client: TestClient) -> None:
    client.post("/v1/cart/items", json={"productId": 2, "variant": {"size": "L"}, "price": 2400})
    client.post("/v1/cart/items", json={"productId": 2, "variant": {"size": "M"}, "price": 2400})

    cart = client.get("/v1/cart").json()
    assert [item["variant"] for item in cart["items"]] == [{"size": "L"}, {"size": "M"}]
    assert cart["shipping"] == 0

    hit = client.get("/v1/cart/contains", params={"productId": "2", "variant": json.dumps({"size": "L"})})
    miss = client.get("/v1/cart/contains", params={"productId": "2"})
    bad = client.get("/v1/cart/contains", params={"productId": "2", "variant": "[1]"})
    assert hit.json() == {"inCart": True}
    assert miss.json() == {"inCart": False}
    assert bad.status_code == 400
    assert bad.json()["error"]["code"] == "VALIDATION_ERROR"


def test_update_to_zero_removes_line(client: TestClient, container: Container) -> None:
    client.post("/v1/cart/items", json={"productId": 6, "quantity": 2, "price": 450})

    updated = client.patch("/v1/cart/items", json={"productId": 6, "quantity": 4})
    assert updated.json()["totalItems"] == 4

    removed = client.patch("/v1/cart/items", json={"productId": 6, "quantity": 0})
    assert removed.status_code == 200
    assert removed.json()["items"] == []

    messages = [row["message"] for row in client.get("/v1/notifications").json()["notifications"]]
    assert messages[:2] == ["Item removed from cart", "Cart updated"]
    assert messages[2].endswith("added to cart!")
    assert container.cart_service.hydrator.cached_ids() == frozenset()


def test_update_unknown_line_is_a_no_op(client: TestClient) -> None:
    response = client.patch("/v1/cart/items", json={"productId": 42, "quantity": 3})

    assert response.status_code == 200
    assert response.json()["items"] == []


def test_remove_and_clear(client: TestClient) -> None:
    client.post("/v1/cart/items", json={"productId": 1, "price": 120})
    client.post("/v1/cart/items", json={"productId": 3, "variant": {"size": "500g"}, "price": 850})

    removed = client.post("/v1/cart/items/remove", json={"productId": 1})
    assert [item["productId"] for item in removed.json()["items"]] == [3]

    cleared = client.delete("/v1/cart")
    assert cleared.json()["items"] == []
    assert cleared.json()["total"] == 0
    notifications = client.get("/v1/notifications", params={"limit": 1}).json()["notifications"]
    assert notifications[0]["message"] == "Cart cleared"


def test_invalid_add_payload_uses_error_envelope(client: TestClient) -> None:
    response = client.post("/v1/cart/items", json={"productId": 1, "quantity": 0, "price": 120})

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"][0]["field"] == "quantity"


def test_bundle_adds_every_item_with_metadata(client: TestClient, container: Container) -> None:
    response = client.post(
        "/v1/cart/bundles",
        json={
            "bundleId": 11,
            "bundleName": "Karahi Night",
            "items": [
                {"productId": 5, "variant": {"pack": 1}, "quantity": 2, "price": 140},
                {"productId": 4, "quantity": 1, "price": 90},
            ],
        },
    )

    assert response.status_code == 201
    items = response.json()["items"]
    assert [item["metadata"]["bundleName"] for item in items] == ["Karahi Night", "Karahi Night"]
    assert container.cart_service.wait_for_persistence(timeout=2)
    assert container.metrics_collector.cart_persist_count("success") == 1


def test_cart_survives_restart_through_durable_storage() -> None:
    backend = InMemoryKeyValueStore()
    settings = Settings(cart_persist_debounce_ms=20)

    with TestClient(create_app(build_container(settings, storage_backend=backend))) as client:
        client.post("/v1/cart/items", json={"productId": 2, "variant": {"size": "XL"}, "quantity": 2, "price": 2550})

    persisted = json.loads(backend.get("bazaarpk-cart") or "[]")
    assert persisted == [
        {"productId": 2, "variant": {"size": "XL"}, "quantity": 2, "price": 2550.0, "metadata": {}}
    ]

    with TestClient(create_app(build_container(settings, storage_backend=backend))) as client:
        cart = client.get("/v1/cart").json()
    assert cart["totalItems"] == 2
    assert cart["subtotal"] == 5100


def test_products_recently_viewed_health_and_metrics(client: TestClient) -> None:
    product = client.get("/v1/products/3")
    assert product.status_code == 200
    assert product.json()["title"] == "Desi Ghee"

    missing = client.get("/v1/products/999")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"

    client.post("/v1/recently-viewed", json={"productId": 3})
    viewed = client.post("/v1/recently-viewed", json={"productId": 1})
    assert viewed.status_code == 201
    assert client.get("/v1/recently-viewed").json() == {"productIds": [1, 3]}

    health = client.get("/health").json()
    assert health["services"]["storage"]["backend"] == "memory"
    assert health["services"]["cart"]["started"] is True

    metrics = client.get("/metrics")
    assert 'path_group="products"' in metrics.text


def test_clearing_recently_viewed_removes_stored_list(client: TestClient, storage_backend: InMemoryKeyValueStore) -> None:
    client.post("/v1/recently-viewed", json={"productId": 2})
    assert storage_backend.get("bazaarpk-recently-viewed") == "[2]"

    cleared = client.delete("/v1/recently-viewed")

    assert cleared.status_code == 200
    assert cleared.json() == {"productIds": []}
    assert client.get("/v1/recently-viewed").json() == {"productIds": []}
    assert storage_backend.get("bazaarpk-recently-viewed") is None


def test_add_toast_names_the_product(client: TestClient) -> None:
    client.post("/v1/cart/items", json={"productId": 3, "price": 850})
    client.post("/v1/cart/items", json={"productId": 2, "price": 2400, "metadata": {"title": "Kurta (Blue)"}})
    client.post("/v1/cart/items", json={"productId": 999, "price": 10})

    messages = [row["message"] for row in client.get("/v1/notifications").json()["notifications"]]
    assert messages == [
        "Product added to cart!",
        "Kurta (Blue) added to cart!",
        "Desi Ghee added to cart!",
    ]
