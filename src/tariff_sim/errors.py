"""Domain error taxonomy shared by every service module."""

from __future__ import annotations


class TariffSimError(Exception):
    """Base class for all errors raised deliberately by tariff_sim."""

    status_code = 500


class ValidationError(TariffSimError):
    """Raised on malformed or out-of-range input (negative rate, bad id shape…)."""

    status_code = 400


class BadRequestError(TariffSimError):
    """Raised when a well-formed request conflicts with current state."""

    status_code = 400


class NotFoundError(TariffSimError):
    """Raised when a rate row, history, cart or override entry is absent."""

    status_code = 404


class DataAccessError(TariffSimError):
    """Raised on store or transport failures. Always carries the original cause."""

    status_code = 500

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is not None:
            return f"{base}: {self.cause}"
        return base
