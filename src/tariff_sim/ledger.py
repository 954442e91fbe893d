"""
Calculation-history ledger.

Each session owns one bounded, newest-first list of completed calculations.
Appending prepends the new entry and evicts from the tail once the list
exceeds ``max_entries`` (100 by default).  ``tariff_amount`` is always
recomputed as ``total_cost - product_cost``; a caller-supplied value is
ignored.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .errors import NotFoundError, ValidationError
from .session_store import HISTORY_ATTR, SessionStore

logger = logging.getLogger(__name__)

MAX_HISTORY_ENTRIES = 100

# wire name → attribute name
_WIRE_FIELDS = {
    "id": "id",
    "product": "product",
    "brand": "brand",
    "exportingFrom": "exporting_from",
    "importingTo": "importing_to",
    "quantity": "quantity",
    "unit": "unit",
    "productCost": "product_cost",
    "tariffRate": "tariff_rate",
    "tariffAmount": "tariff_amount",
    "totalCost": "total_cost",
    "tariffType": "tariff_type",
    "source": "source",
    "createdAt": "created_at",
}


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class CalculationHistoryEntry:
    product: str = ""
    brand: str | None = None
    exporting_from: str = ""
    importing_to: str = ""
    quantity: float = 0.0
    unit: str = ""
    product_cost: float = 0.0
    tariff_rate: float = 0.0
    tariff_amount: float = 0.0
    total_cost: float = 0.0
    tariff_type: str = ""
    source: str = "global"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=_now_iso)

    def as_dict(self) -> dict[str, Any]:
        return {wire: getattr(self, attr) for wire, attr in _WIRE_FIELDS.items()}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CalculationHistoryEntry":
        kwargs = {}
        for wire, attr in _WIRE_FIELDS.items():
            if wire in raw:
                kwargs[attr] = raw[wire]
            elif attr in raw:
                kwargs[attr] = raw[attr]
        if "product" not in kwargs and "productName" in raw:
            kwargs["product"] = raw["productName"]
        return cls(**kwargs)


def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Calculation field '{key}' must be numeric, got {value!r}") from exc


def _text(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    return default if value is None else str(value)


def entry_from_calculation(calculation: dict[str, Any] | None) -> CalculationHistoryEntry | None:
    """
    Build a history entry from a raw calculation payload ``{"data": {...}}``.

    Returns None when the nested ``data`` mapping is missing.
    """
    if not isinstance(calculation, dict):
        return None
    data = calculation.get("data")
    if not isinstance(data, dict):
        return None

    product_cost = _number(data, "productCost")
    total_cost = _number(data, "totalCost")
    brand = data.get("brand")
    return CalculationHistoryEntry(
        product=_text(data, "product"),
        brand=str(brand) if brand is not None else None,
        exporting_from=_text(data, "exportingFrom"),
        importing_to=_text(data, "importingTo"),
        quantity=_number(data, "quantity"),
        unit=_text(data, "unit"),
        product_cost=product_cost,
        tariff_rate=_number(data, "tariffRate"),
        tariff_amount=total_cost - product_cost,
        total_cost=total_cost,
        tariff_type=_text(data, "tariffType"),
        source=_text(data, "source", "global") or "global",
    )


class CalculationHistoryLedger:
    def __init__(self, store: SessionStore, max_entries: int = MAX_HISTORY_ENTRIES) -> None:
        self.store = store
        self.max_entries = max_entries

    def _load(self, session_id: str) -> list[dict]:
        return self.store.read(session_id, HISTORY_ATTR) or []

    def append(self, session_id: str, calculation: dict[str, Any] | None) -> CalculationHistoryEntry | None:
        """Record a calculation; returns None (nothing stored) on a malformed payload."""
        entry = entry_from_calculation(calculation)
        if entry is None:
            logger.debug("Session %s: calculation payload has no data; nothing recorded", session_id)
            return None

        history = self._load(session_id)
        history.insert(0, entry.as_dict())
        if len(history) > self.max_entries:
            logger.debug("History size > %d, trimming oldest entries for session %s",
                         self.max_entries, session_id)
            del history[self.max_entries:]

        self.store.write(session_id, HISTORY_ATTR, history)
        return entry

    def list(self, session_id: str) -> list[CalculationHistoryEntry]:
        return [CalculationHistoryEntry.from_dict(h) for h in self._load(session_id)]

    def get_by_id(self, session_id: str, calculation_id: str) -> CalculationHistoryEntry | None:
        for item in self._load(session_id):
            if item.get("id") == calculation_id:
                return CalculationHistoryEntry.from_dict(item)
        return None

    def remove_by_id(self, session_id: str, calculation_id: str, missing_ok: bool = False) -> bool:
        """
        Remove one entry. With ``missing_ok`` an absent id is a no-op (cart
        hand-off); otherwise it raises :class:`NotFoundError`.
        """
        history = self._load(session_id)
        remaining = [h for h in history if h.get("id") != calculation_id]
        if len(remaining) == len(history):
            if missing_ok:
                logger.debug("Calculation %s not found in session %s", calculation_id, session_id)
                return False
            raise NotFoundError("Calculation not found in history")

        self.store.write(session_id, HISTORY_ATTR, remaining)
        logger.debug("Calculation %s removed from session %s", calculation_id, session_id)
        return True

    def clear(self, session_id: str) -> None:
        self.store.drop(session_id, HISTORY_ATTR)
