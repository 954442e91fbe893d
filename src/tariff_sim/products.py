"""Product catalogue lookups (name → cost / unit)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from . import db
from .errors import DataAccessError


@dataclass(frozen=True)
class Product:
    name: str
    brand: str | None = None
    cost: float | None = None
    unit: str | None = None


class PostgresProductCatalog:
    def find_by_name(self, name: str) -> list[Product]:
        try:
            rows = db.query_products_by_name(name)
        except Exception as exc:
            raise DataAccessError("Failed to read products", exc) from exc
        return [
            Product(
                name=r["name"],
                brand=r.get("brand"),
                cost=float(r["cost"]) if r.get("cost") is not None else None,
                unit=r.get("unit"),
            )
            for r in rows
        ]

    def distinct_names(self) -> list[str]:
        try:
            return db.query_distinct_products()
        except Exception as exc:
            raise DataAccessError("Failed to list products", exc) from exc


class MemoryProductCatalog:
    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products = list(products)

    def find_by_name(self, name: str) -> list[Product]:
        return [p for p in self._products if p.name == name]

    def distinct_names(self) -> list[str]:
        return sorted({p.name for p in self._products})
