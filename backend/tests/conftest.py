from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from storefront.container import Container, build_container
from storefront.core.config import Settings
from storefront.infrastructure.key_value import InMemoryKeyValueStore
from storefront.main import create_app


@pytest.fixture()
def settings() -> Settings:
    return Settings(cart_persist_debounce_ms=20, product_fetch_max_workers=4)


@pytest.fixture()
def storage_backend() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def container(settings: Settings, storage_backend: InMemoryKeyValueStore) -> Container:
    return build_container(settings, storage_backend=storage_backend)


@pytest.fixture()
def client(container: Container):
    with TestClient(create_app(container)) as test_client:
        yield test_client
