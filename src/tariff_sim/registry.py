"""
Tariff definition registry: effective-rate resolution and admin overrides.

Admin overrides are written straight into the rate table and mirrored into
a process-local cache (:class:`AdminOverrideCache`).  The cache is NOT shared
between processes and does not survive a restart, so only a single writer
instance should serve the admin endpoints.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable

from .definitions import (
    DEFAULT_EFFECTIVE_DATE,
    DEFAULT_EXPIRATION_DATE,
    TariffDefinition,
    admin_id,
    parse_admin_id,
    validate_definition,
)
from .errors import NotFoundError, ValidationError
from .fta import AHS, MFN, is_preferential
from .rates import RateEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRate:
    type: str
    rate: float | None

    def as_dict(self) -> dict:
        return {"type": self.type, "rate": self.rate}


class AdminOverrideCache:
    """Insertion-ordered, lock-guarded map of admin definitions keyed by id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, TariffDefinition] = {}

    def upsert(self, definition: TariffDefinition) -> None:
        if not definition.id:
            raise ValidationError("Tariff definition id is required")
        with self._lock:
            # remove-then-append keeps "most recently written" at the end
            self._items.pop(definition.id, None)
            self._items[definition.id] = definition

    def remove(self, definition_id: str) -> None:
        with self._lock:
            self._items.pop(definition_id, None)

    def values(self) -> list[TariffDefinition]:
        with self._lock:
            return list(self._items.values())


class TariffDefinitionRegistry:
    def __init__(self, rate_table, cache: AdminOverrideCache | None = None) -> None:
        self.rate_table = rate_table
        self.cache = cache or AdminOverrideCache()

    # ── Resolution ────────────────────────────────────────────────────────────

    def resolve(self, reporter: str, partner: str) -> ResolvedRate:
        """Return the AHS rate for preferential routes, the MFN rate otherwise."""
        entry = self.rate_table.find(reporter, partner)
        if entry is None:
            raise NotFoundError(f"Tariff data not available for {partner} → {reporter}")
        if is_preferential(reporter, partner):
            return ResolvedRate(AHS, entry.ahs_weighted)
        return ResolvedRate(MFN, entry.mfn_weighted)

    def list_all_definitions(self, products: Iterable[str]) -> list[TariffDefinition]:
        """
        Expand every product × rate row into a definition.

        A row is listed only when the route is preferential or its AHS and MFN
        rates coincide; non-preferential rows with differing rates are omitted.
        """
        entries = self.rate_table.all()
        definitions: list[TariffDefinition] = []
        next_id = 1
        for product in products:
            for entry in entries:
                preferential = is_preferential(entry.country, entry.partner)
                same_rate = entry.ahs_weighted == entry.mfn_weighted
                if not (preferential or same_rate):
                    continue
                rate = entry.ahs_weighted if preferential else entry.mfn_weighted
                if rate is None:
                    continue
                definitions.append(
                    TariffDefinition(
                        id=str(next_id),
                        product=product,
                        exporting_from=entry.partner,
                        importing_to=entry.country,
                        type=AHS if preferential else MFN,
                        rate=rate,
                        effective_date=DEFAULT_EFFECTIVE_DATE,
                        expiration_date=DEFAULT_EXPIRATION_DATE,
                    )
                )
                next_id += 1
        return definitions

    def list_admin_overrides(self) -> list[TariffDefinition]:
        return self.cache.values()

    # ── Admin overrides ───────────────────────────────────────────────────────

    def add_admin_override(self, dto: TariffDefinition) -> TariffDefinition:
        validate_definition(dto)
        importing_to = dto.importing_to.strip()
        exporting_from = dto.exporting_from.strip()

        entry = self.rate_table.find(importing_to, exporting_from)
        created = entry is None
        if created:
            entry = RateEntry(country=importing_to, partner=exporting_from,
                              ahs_weighted=0.0, mfn_weighted=0.0)

        # AHS and MFN stay in sync until a second, distinct override arrives
        if dto.type == AHS:
            entry.ahs_weighted = dto.rate
            if created or not entry.mfn_weighted:
                entry.mfn_weighted = dto.rate
        else:
            entry.mfn_weighted = dto.rate
            if created or not entry.ahs_weighted:
                entry.ahs_weighted = dto.rate

        self.rate_table.upsert(entry)
        definition = self._to_definition(entry, dto)
        self.cache.upsert(definition)
        logger.info(
            "Admin override %s: %s=%.4f (created=%s)", definition.id, dto.type, dto.rate, created
        )
        return definition

    def update_admin_override(self, definition_id: str, dto: TariffDefinition) -> TariffDefinition:
        validate_definition(dto)
        importing_to, exporting_from = parse_admin_id(definition_id)

        entry = self.rate_table.find(importing_to, exporting_from)
        if entry is None:
            raise NotFoundError(
                f"Tariff definition not found for country: {importing_to}, partner: {exporting_from}"
            )
        if dto.type == AHS:
            entry.ahs_weighted = dto.rate
        else:
            entry.mfn_weighted = dto.rate

        self.rate_table.upsert(entry)
        definition = self._to_definition(entry, dto)
        self.cache.upsert(definition)
        logger.info("Admin override %s updated: %s=%.4f", definition.id, dto.type, dto.rate)
        return definition

    def delete_admin_override(self, definition_id: str) -> None:
        importing_to, exporting_from = parse_admin_id(definition_id)
        if self.rate_table.find(importing_to, exporting_from) is None:
            raise NotFoundError(
                f"Tariff definition not found for country: {importing_to}, partner: {exporting_from}"
            )
        self.rate_table.delete(importing_to, exporting_from)
        self.cache.remove(definition_id)
        logger.info("Admin override %s deleted", definition_id)

    @staticmethod
    def _to_definition(entry: RateEntry, dto: TariffDefinition) -> TariffDefinition:
        rate = entry.ahs_weighted if dto.type == AHS else entry.mfn_weighted
        return TariffDefinition(
            id=admin_id(entry.country, entry.partner),
            product=dto.product,
            exporting_from=entry.partner,
            importing_to=entry.country,
            type=dto.type,
            rate=rate if rate is not None else 0.0,
            effective_date=dto.effective_date or "N/A",
            expiration_date=dto.expiration_date or DEFAULT_EXPIRATION_DATE,
        )
