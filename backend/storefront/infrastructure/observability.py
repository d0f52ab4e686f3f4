from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from time import perf_counter
from typing import Iterable


_LATENCY_BUCKETS_MS = (5, 25, 50, 100, 250, 500, 1000)
_PREFIX = "storefront"


@dataclass(frozen=True)
class RequestTimer:
    started_at: float

    @staticmethod
    def start() -> "RequestTimer":
        return RequestTimer(started_at=perf_counter())

    def elapsed_ms(self) -> float:
        return max(0.0, (perf_counter() - self.started_at) * 1000.0)


def _format_labels(names: tuple[str, ...], values: tuple[str, ...]) -> str:
    pairs = ",".join(f'{name}="{value}"' for name, value in zip(names, values))
    return "{" + pairs + "}"


class _CounterFamily:
    def __init__(self, name: str, help_text: str, label_names: tuple[str, ...]) -> None:
        self.name = f"{_PREFIX}_{name}"
        self.help_text = help_text
        self.label_names = label_names
        self.values: dict[tuple[str, ...], int] = {}

    def inc(self, *labels: str) -> None:
        self.values[labels] = self.values.get(labels, 0) + 1

    def get(self, *labels: str) -> int:
        return self.values.get(labels, 0)

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} counter"]
        for labels, count in sorted(self.values.items()):
            lines.append(f"{self.name}{_format_labels(self.label_names, labels)} {count}")
        return lines


class MetricsCollector:
    """Thread-safe counters for the HTTP surface and the cart's background work."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._http_requests = _CounterFamily(
            "http_requests_total",
            "Total HTTP requests by method/path/status.",
            ("method", "path_group", "status"),
        )
        self._cart_persist = _CounterFamily(
            "cart_persist_total",
            "Durable cart snapshot writes by outcome.",
            ("result",),
        )
        self._product_fetch = _CounterFamily(
            "product_fetch_total",
            "Product lookups issued for cart hydration by outcome.",
            ("result",),
        )
        for result in ("success", "failed"):
            self._cart_persist.values[(result,)] = 0
        for result in ("success", "missing", "failed"):
            self._product_fetch.values[(result,)] = 0
        # keyed by (method, path_group); buckets hold cumulative counts
        self._latency_sum_ms: dict[tuple[str, str], float] = {}
        self._latency_buckets: dict[tuple[str, str], list[int]] = {}

    def record_http(
        self,
        *,
        method: str,
        path_group: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        route = (method.upper(), path_group)
        with self._lock:
            self._http_requests.inc(route[0], path_group, str(status_code))
            self._latency_sum_ms[route] = self._latency_sum_ms.get(route, 0.0) + duration_ms
            buckets = self._latency_buckets.setdefault(route, [0] * (len(_LATENCY_BUCKETS_MS) + 1))
            for index in self._bucket_indexes(duration_ms):
                buckets[index] += 1

    def record_cart_persist(self, *, success: bool) -> None:
        with self._lock:
            self._cart_persist.inc("success" if success else "failed")

    def record_product_fetch(self, *, result: str) -> None:
        with self._lock:
            self._product_fetch.inc(result)

    def cart_persist_count(self, result: str) -> int:
        with self._lock:
            return self._cart_persist.get(result)

    def product_fetch_count(self, result: str) -> int:
        with self._lock:
            return self._product_fetch.get(result)

    def render_prometheus(self) -> str:
        with self._lock:
            lines = self._http_requests.render()
            lines.extend(self._render_latency())
            lines.extend(self._cart_persist.render())
            lines.extend(self._product_fetch.render())
        return "\n".join(lines) + "\n"

    def _render_latency(self) -> list[str]:
        name = f"{_PREFIX}_http_request_duration_ms"
        lines = [
            f"# HELP {name} HTTP request latency histogram in milliseconds.",
            f"# TYPE {name} histogram",
        ]
        label_names = ("method", "path_group")
        bucket_labels = [str(bucket) for bucket in _LATENCY_BUCKETS_MS] + ["+Inf"]
        for route in sorted(self._latency_buckets):
            buckets = self._latency_buckets[route]
            for bucket_label, count in zip(bucket_labels, buckets):
                labels = _format_labels(label_names + ("le",), route + (bucket_label,))
                lines.append(f"{name}_bucket{labels} {count}")
            route_labels = _format_labels(label_names, route)
            lines.append(f"{name}_sum{route_labels} {self._latency_sum_ms.get(route, 0.0):.4f}")
            lines.append(f"{name}_count{route_labels} {buckets[-1]}")
        return lines

    def _bucket_indexes(self, duration_ms: float) -> Iterable[int]:
        for index, bucket in enumerate(_LATENCY_BUCKETS_MS):
            if duration_ms <= bucket:
                yield index
        yield len(_LATENCY_BUCKETS_MS)
