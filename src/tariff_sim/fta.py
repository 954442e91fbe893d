"""
Preferential-route classification.

A route is *preferential* when both the reporter (importing) country and the
partner (exporting) country belong to the fixed Free-Trade-Agreement set
below.  Preferential routes are quoted at the AHS weighted rate; every other
route falls back to the MFN weighted rate.
"""

from __future__ import annotations

# ── FTA membership ────────────────────────────────────────────────────────────

FTA_COUNTRIES: frozenset[str] = frozenset(
    {
        "Australia",
        "China",
        "Indonesia",
        "India",
        "Japan",
        "Malaysia",
        "Philippines",
        "Singapore",
        "Vietnam",
    }
)

AHS = "AHS"
MFN = "MFN"
TARIFF_TYPES = (AHS, MFN)


def is_preferential(reporter: str | None, partner: str | None) -> bool:
    """Return True when both countries are FTA members (exact name match)."""
    return reporter in FTA_COUNTRIES and partner in FTA_COUNTRIES


def tariff_type_for(reporter: str | None, partner: str | None) -> str:
    return AHS if is_preferential(reporter, partner) else MFN
