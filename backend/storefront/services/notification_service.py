from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable

logger = logging.getLogger(__name__)

_KINDS = {"success", "error", "warning", "info"}
_AUTO_CLOSE_MS = {"error": 5000}


class NotificationService:
    """Fire-and-forget toasts for cart actions.

    Delivery problems are logged and dropped; callers never see them.
    """

    def __init__(
        self,
        *,
        history_size: int = 50,
        sink: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        self.sink = sink
        self._lock = Lock()
        self._counter = 0
        self._recent: deque[dict[str, Any]] = deque(maxlen=max(1, history_size))

    def notify(self, message: str, kind: str = "info") -> dict[str, Any] | None:
        try:
            normalized = kind if kind in _KINDS else "info"
            with self._lock:
                self._counter += 1
                payload = {
                    "id": f"toast_{self._counter:06d}",
                    "type": normalized,
                    "message": message,
                    "autoCloseMs": _AUTO_CLOSE_MS.get(normalized, 3000),
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                }
                self._recent.append(payload)
            if normalized == "error":
                logger.info("Error toast shown: %s", message)
            if self.sink is not None:
                self.sink(dict(payload))
            return payload
        except Exception as exc:
            logger.warning("Toast delivery failed for %r", message, exc_info=exc)
            return None

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            rows = list(self._recent)
        return [dict(row) for row in reversed(rows)][: max(0, limit)]
