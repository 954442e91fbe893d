"""Tariff quoting, rate simulation and session-scoped history/export cart."""

__version__ = "1.0.0"
