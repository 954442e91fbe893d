"""Tariff definition records and their validation / id rules."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any

from .errors import ValidationError
from .fta import TARIFF_TYPES

DEFAULT_EFFECTIVE_DATE = "1/1/2022"
DEFAULT_EXPIRATION_DATE = "Ongoing"

_ID_SEPARATOR = "_"


@dataclass
class TariffDefinition:
    id: str | None = None
    product: str | None = None
    exporting_from: str | None = None
    importing_to: str | None = None
    type: str | None = None
    rate: float = 0.0
    effective_date: str | None = None
    expiration_date: str | None = None

    def with_id(self, new_id: str) -> "TariffDefinition":
        return replace(self, id=new_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product": self.product,
            "exportingFrom": self.exporting_from,
            "importingTo": self.importing_to,
            "type": self.type,
            "rate": self.rate,
            "effectiveDate": self.effective_date,
            "expirationDate": self.expiration_date,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "TariffDefinition":
        """Build from a camelCase (wire / session) or snake_case mapping."""

        def pick(camel: str, snake: str) -> Any:
            return raw.get(camel, raw.get(snake))

        rate = raw.get("rate")
        return cls(
            id=raw.get("id"),
            product=raw.get("product"),
            exporting_from=pick("exportingFrom", "exporting_from"),
            importing_to=pick("importingTo", "importing_to"),
            type=raw.get("type"),
            rate=float(rate) if rate is not None else 0.0,
            effective_date=pick("effectiveDate", "effective_date"),
            expiration_date=pick("expirationDate", "expiration_date"),
        )


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def validate_definition(dto: TariffDefinition) -> None:
    """Raise :class:`ValidationError` unless *dto* is a usable rate override."""
    if _blank(dto.importing_to):
        raise ValidationError("Importing country is required")
    if _blank(dto.exporting_from):
        raise ValidationError("Exporting country is required")
    if _blank(dto.type):
        raise ValidationError("Tariff type is required")
    if dto.type not in TARIFF_TYPES:
        raise ValidationError("Tariff type must be either 'AHS' or 'MFN'")
    if dto.rate is None or not math.isfinite(dto.rate):
        raise ValidationError("Tariff rate must be a finite number")
    if dto.rate < 0:
        raise ValidationError("Tariff rate cannot be negative")


def admin_id(importing_to: str, exporting_from: str) -> str:
    """Admin override ids are ``"{importing_to}_{exporting_from}"``."""
    return f"{importing_to}{_ID_SEPARATOR}{exporting_from}"


def parse_admin_id(definition_id: str | None) -> tuple[str, str]:
    """
    Split an admin override id back into ``(importing_to, exporting_from)``.

    Country names containing ``_`` cannot be represented: any id that does not
    split into exactly two non-empty parts is rejected.
    """
    parts = (definition_id or "").split(_ID_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValidationError("Invalid tariff ID format")
    return parts[0], parts[1]
