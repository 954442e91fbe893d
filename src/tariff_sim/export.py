"""CSV rendering of the export cart."""

from __future__ import annotations

import time
from typing import Iterable

import pandas as pd

from .ledger import CalculationHistoryEntry

CSV_COLUMNS = [
    "ID",
    "Product",
    "Brand",
    "Exporting From",
    "Importing To",
    "Quantity",
    "Unit",
    "Product Cost",
    "Tariff Rate",
    "Tariff Amount",
    "Total Cost",
    "Tariff Type",
    "Created At",
]


def _money(value: float | None) -> str:
    return f"{float(value or 0.0):.2f}"


def cart_dataframe(entries: Iterable[CalculationHistoryEntry]) -> pd.DataFrame:
    rows = [
        {
            "ID": e.id,
            "Product": e.product,
            "Brand": e.brand or "",
            "Exporting From": e.exporting_from,
            "Importing To": e.importing_to,
            "Quantity": _money(e.quantity),
            "Unit": e.unit,
            "Product Cost": _money(e.product_cost),
            "Tariff Rate": f"{_money(e.tariff_rate)}%",
            "Tariff Amount": _money(e.tariff_amount),
            "Total Cost": _money(e.total_cost),
            "Tariff Type": e.tariff_type,
            "Created At": e.created_at,
        }
        for e in entries
    ]
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def render_cart_csv(entries: Iterable[CalculationHistoryEntry]) -> str:
    """Return the cart as CSV text (header row always present)."""
    return cart_dataframe(entries).to_csv(index=False)


def export_filename(now: float | None = None) -> str:
    millis = int((now if now is not None else time.time()) * 1000)
    return f"export_cart_{millis}.csv"
