"""Load weighted tariff rates from a CSV extract into the rate table."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import pandas as pd

from .rates import RateEntry

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("country", "partner", "ahs_weighted", "mfn_weighted")


def _clean_name(raw) -> str | None:
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return None
    cleaned = re.sub(r"\s+", " ", str(raw)).strip()
    return cleaned or None


def normalize_rates(df: pd.DataFrame) -> pd.DataFrame:
    """Trim names, coerce rates to float (blank → NaN) and drop unkeyed rows."""
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Rate CSV is missing column(s): {', '.join(missing)}")

    df = df.copy()
    df["country"] = df["country"].apply(_clean_name)
    df["partner"] = df["partner"].apply(_clean_name)
    for col in ("ahs_weighted", "mfn_weighted"):
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
        df.loc[df[col] < 0, col] = float("nan")
    if "year" in df.columns:
        df["year"] = pd.to_numeric(df["year"], errors="coerce")

    df = df.loc[df["country"].notna() & df["partner"].notna()].reset_index(drop=True)
    return df


def _opt(value):
    return None if pd.isna(value) else value


def load_rates_csv(path: str | Path) -> list[RateEntry]:
    df = normalize_rates(pd.read_csv(Path(path), dtype=str))
    entries = []
    for row in df.to_dict(orient="records"):
        year = _opt(row.get("year"))
        hs_code = _opt(row.get("hs_code"))
        ahs = _opt(row["ahs_weighted"])
        mfn = _opt(row["mfn_weighted"])
        entries.append(
            RateEntry(
                country=row["country"],
                partner=row["partner"],
                ahs_weighted=float(ahs) if ahs is not None else None,
                mfn_weighted=float(mfn) if mfn is not None else None,
                hs_code=str(hs_code).strip() if hs_code is not None else None,
                year=int(year) if year is not None else None,
            )
        )
    logger.info("Loaded %d rate row(s) from %s", len(entries), path)
    return entries


def import_rates(rate_table, entries: list[RateEntry]) -> int:
    """Upsert *entries* into *rate_table*. Returns the number of rows written."""
    count = rate_table.upsert_many(entries)
    logger.info("Imported %d rate row(s)", count)
    return count
