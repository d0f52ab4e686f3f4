from __future__ import annotations

import json
import logging
from typing import Any

from storefront.infrastructure.key_value import KeyValueBackend

logger = logging.getLogger(__name__)


class SnapshotStorage:
    """JSON list stored under one fixed key of a synchronous key-value backend.

    Nothing here raises: unreadable data loads as ``None`` and failed writes
    are logged and reported through the return value.
    """

    def __init__(self, backend: KeyValueBackend, key: str) -> None:
        self.backend = backend
        self.key = key

    def load(self) -> list[Any] | None:
        try:
            raw = self.backend.get(self.key)
        except Exception as exc:
            logger.warning("Failed to read %r from %s storage", self.key, self.backend.name, exc_info=exc)
            return None
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding unreadable snapshot under %r: %s", self.key, exc)
            return None
        if not isinstance(payload, list):
            logger.warning("Discarding snapshot under %r: expected a list, got %s", self.key, type(payload).__name__)
            return None
        return payload

    def save(self, snapshot: list[Any]) -> bool:
        try:
            self.backend.set(self.key, json.dumps(snapshot))
        except Exception as exc:
            logger.warning("Failed to save %r to %s storage", self.key, self.backend.name, exc_info=exc)
            return False
        return True

    def remove(self) -> bool:
        try:
            self.backend.delete(self.key)
        except Exception as exc:
            logger.warning("Failed to remove %r from %s storage", self.key, self.backend.name, exc_info=exc)
            return False
        return True
