"""
Rate table: weighted AHS / MFN rate pairs per (reporter, partner) route.

Two backends share one duck-typed interface:

  PostgresRateTable – production store on top of :mod:`tariff_sim.db`.
  MemoryRateTable   – process-local dict, used by tests and local runs.

Every backend failure is wrapped in :class:`~tariff_sim.errors.DataAccessError`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Iterable

from . import db
from .errors import DataAccessError

logger = logging.getLogger(__name__)


@dataclass
class RateEntry:
    country: str                      # reporter / importing country
    partner: str                      # exporting country
    ahs_weighted: float | None = None
    mfn_weighted: float | None = None
    hs_code: str | None = None
    year: int | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self.country, self.partner

    def as_row(self) -> dict[str, Any]:
        return {
            "country": self.country,
            "partner": self.partner,
            "hs_code": self.hs_code,
            "year": self.year,
            "ahs_weighted": self.ahs_weighted,
            "mfn_weighted": self.mfn_weighted,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RateEntry":
        return cls(
            country=row["country"],
            partner=row["partner"],
            ahs_weighted=_opt_float(row.get("ahs_weighted")),
            mfn_weighted=_opt_float(row.get("mfn_weighted")),
            hs_code=row.get("hs_code"),
            year=int(row["year"]) if row.get("year") is not None else None,
        )


def _opt_float(value: Any) -> float | None:
    return float(value) if value is not None else None


# ── PostgreSQL ────────────────────────────────────────────────────────────────

class PostgresRateTable:
    """RateTable backed by the ``tariff_rates`` table."""

    def find(self, country: str, partner: str) -> RateEntry | None:
        try:
            row = db.query_rate(country, partner)
        except Exception as exc:
            raise DataAccessError("Failed to read tariff rate", exc) from exc
        return RateEntry.from_row(row) if row else None

    def all(self) -> list[RateEntry]:
        try:
            return [RateEntry.from_row(r) for r in db.query_all_rates()]
        except Exception as exc:
            raise DataAccessError("Failed to list tariff rates", exc) from exc

    def upsert(self, entry: RateEntry) -> RateEntry:
        self.upsert_many([entry])
        return entry

    def upsert_many(self, entries: Iterable[RateEntry]) -> int:
        try:
            return db.upsert_rates([e.as_row() for e in entries])
        except Exception as exc:
            raise DataAccessError("Failed to save tariff rates", exc) from exc

    def delete(self, country: str, partner: str) -> bool:
        try:
            return db.delete_rate(country, partner) > 0
        except Exception as exc:
            raise DataAccessError("Failed to delete tariff rate", exc) from exc

    def distinct_countries(self) -> list[str]:
        try:
            return db.query_distinct("country")
        except Exception as exc:
            raise DataAccessError("Failed to list countries", exc) from exc

    def distinct_partners(self) -> list[str]:
        try:
            return db.query_distinct("partner")
        except Exception as exc:
            raise DataAccessError("Failed to list partners", exc) from exc


# ── In-memory ─────────────────────────────────────────────────────────────────

class MemoryRateTable:
    """Thread-safe dict keyed by (country, partner). Entries are copied in and out."""

    def __init__(self, entries: Iterable[RateEntry] = ()) -> None:
        self._lock = threading.Lock()
        self._rows: dict[tuple[str, str], RateEntry] = {}
        for entry in entries:
            self._rows[entry.key] = replace(entry)

    def find(self, country: str, partner: str) -> RateEntry | None:
        with self._lock:
            entry = self._rows.get((country, partner))
            return replace(entry) if entry else None

    def all(self) -> list[RateEntry]:
        with self._lock:
            return [replace(e) for e in self._rows.values()]

    def upsert(self, entry: RateEntry) -> RateEntry:
        with self._lock:
            self._rows[entry.key] = replace(entry)
        return entry

    def upsert_many(self, entries: Iterable[RateEntry]) -> int:
        count = 0
        for entry in entries:
            self.upsert(entry)
            count += 1
        return count

    def delete(self, country: str, partner: str) -> bool:
        with self._lock:
            return self._rows.pop((country, partner), None) is not None

    def distinct_countries(self) -> list[str]:
        with self._lock:
            return sorted({k[0] for k in self._rows})

    def distinct_partners(self) -> list[str]:
        with self._lock:
            return sorted({k[1] for k in self._rows})
