from __future__ import annotations

import json
import logging
from copy import deepcopy
from dataclasses import dataclass, field, replace
from threading import RLock
from typing import Any, Iterable, Mapping, Union

logger = logging.getLogger(__name__)

ProductId = Union[str, int]
LineKey = tuple[ProductId, str]


def canonical_variant(variant: Mapping[str, Any] | None) -> str:
    """Serialize a variant selector so that field order never changes identity.

    Uses the same JSON encoding as the persisted snapshot, so a variant that
    cannot be stored raises ``TypeError`` or ``ValueError`` here as well.
    """
    if isinstance(variant, Mapping):
        variant = dict(variant)
    return json.dumps(variant, sort_keys=True, separators=(",", ":"))


def line_key(product_id: ProductId, variant: Mapping[str, Any] | None) -> LineKey:
    return (product_id, canonical_variant(variant))


def _find_key(product_id: ProductId, variant: Mapping[str, Any] | None) -> LineKey | None:
    try:
        return line_key(product_id, variant)
    except (TypeError, ValueError):
        return None


def _is_json(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class CartLine:
    product_id: ProductId
    variant: dict[str, Any] | None
    quantity: int
    unit_price: float
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> LineKey:
        return line_key(self.product_id, self.variant)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "productId": self.product_id,
            "variant": deepcopy(self.variant),
            "quantity": self.quantity,
            "price": self.unit_price,
            "metadata": deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "CartLine":
        product_id = row.get("productId")
        if not isinstance(product_id, (str, int)) or isinstance(product_id, bool):
            raise ValueError(f"Invalid productId: {product_id!r}")
        variant = row.get("variant")
        if variant is not None and not isinstance(variant, Mapping):
            raise ValueError(f"Invalid variant: {variant!r}")
        quantity = row.get("quantity")
        if not _is_positive_int(quantity):
            raise ValueError(f"Invalid quantity: {quantity!r}")
        price = row.get("price", 0)
        if not _is_number(price):
            raise ValueError(f"Invalid price: {price!r}")
        if not _is_json(dict(variant) if variant is not None else None):
            raise ValueError(f"Variant is not JSON: {variant!r}")
        metadata = row.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            metadata = {}
        if not _is_json(dict(metadata)):
            raise ValueError(f"Metadata is not JSON: {metadata!r}")
        return cls(
            product_id=product_id,
            variant=deepcopy(dict(variant)) if variant is not None else None,
            quantity=quantity,
            unit_price=price,
            metadata=deepcopy(dict(metadata)),
        )


class CartLedger:
    """Insertion-ordered cart lines, unique per (product id, variant).

    Mutations return ``True`` when they changed the ledger so the owner can
    decide whether to notify subscribers and schedule persistence.
    """

    def __init__(self) -> None:
        self.lock = RLock()
        self._lines: dict[LineKey, CartLine] = {}

    def add_line(
        self,
        product_id: ProductId,
        variant: Mapping[str, Any] | None,
        quantity: int,
        unit_price: float,
        metadata: Mapping[str, Any] | None = None,
    ) -> bool:
        if not _is_positive_int(quantity):
            logger.debug("Ignoring add of %r with non-positive quantity %r", product_id, quantity)
            return False
        if not _is_number(unit_price):
            logger.warning("Ignoring add of %r with non-numeric price %r", product_id, unit_price)
            return False
        if variant is not None and not isinstance(variant, Mapping):
            logger.warning("Ignoring add of %r with invalid variant %r", product_id, variant)
            return False
        if metadata is not None and not isinstance(metadata, Mapping):
            logger.warning("Ignoring add of %r with invalid metadata %r", product_id, metadata)
            return False
        key = _find_key(product_id, variant)
        if key is None or not _is_json(dict(metadata or {})):
            logger.warning("Ignoring add of %r: variant or metadata cannot be stored as JSON", product_id)
            return False
        with self.lock:
            existing = self._lines.get(key)
            if existing is not None:
                self._lines[key] = replace(existing, quantity=existing.quantity + quantity)
                return True
            self._lines[key] = CartLine(
                product_id=product_id,
                variant=deepcopy(dict(variant)) if variant is not None else None,
                quantity=quantity,
                unit_price=unit_price,
                metadata=deepcopy(dict(metadata or {})),
            )
            return True

    def remove_line(self, product_id: ProductId, variant: Mapping[str, Any] | None) -> bool:
        key = _find_key(product_id, variant)
        if key is None:
            return False
        with self.lock:
            return self._lines.pop(key, None) is not None

    def set_quantity(
        self, product_id: ProductId, variant: Mapping[str, Any] | None, quantity: int
    ) -> bool:
        if _is_number(quantity) and quantity <= 0:
            return self.remove_line(product_id, variant)
        if not _is_positive_int(quantity):
            logger.debug("Ignoring quantity update of %r to %r", product_id, quantity)
            return False
        key = _find_key(product_id, variant)
        if key is None:
            return False
        with self.lock:
            existing = self._lines.get(key)
            if existing is None or existing.quantity == quantity:
                return False
            self._lines[key] = replace(existing, quantity=quantity)
            return True

    def clear(self) -> bool:
        with self.lock:
            if not self._lines:
                return False
            self._lines = {}
            return True

    def total_items(self) -> int:
        with self.lock:
            return sum(line.quantity for line in self._lines.values())

    def total_price(self) -> float:
        with self.lock:
            return sum(line.line_total for line in self._lines.values())

    def contains(self, product_id: ProductId, variant: Mapping[str, Any] | None) -> bool:
        key = _find_key(product_id, variant)
        if key is None:
            return False
        with self.lock:
            return key in self._lines

    def lines(self) -> tuple[CartLine, ...]:
        with self.lock:
            return tuple(self._lines.values())

    def product_ids(self) -> tuple[ProductId, ...]:
        with self.lock:
            return tuple(dict.fromkeys(line.product_id for line in self._lines.values()))

    def is_empty(self) -> bool:
        with self.lock:
            return not self._lines

    def __len__(self) -> int:
        with self.lock:
            return len(self._lines)

    def snapshot(self) -> list[dict[str, Any]]:
        with self.lock:
            return [line.to_dict() for line in self._lines.values()]

    def restore(self, rows: Iterable[Any]) -> int:
        """Replace the ledger with persisted rows; returns the number of lines kept.

        Malformed rows are dropped and rows that share an identity key are
        merged by summing quantities, keeping the first row's price.
        """
        restored: dict[LineKey, CartLine] = {}
        for row in rows:
            if not isinstance(row, Mapping):
                logger.warning("Dropping persisted cart row that is not an object: %r", row)
                continue
            try:
                line = CartLine.from_dict(row)
            except ValueError as exc:
                logger.warning("Dropping invalid persisted cart row: %s", exc)
                continue
            existing = restored.get(line.key)
            if existing is not None:
                restored[line.key] = replace(existing, quantity=existing.quantity + line.quantity)
            else:
                restored[line.key] = line
        with self.lock:
            self._lines = restored
            return len(self._lines)
