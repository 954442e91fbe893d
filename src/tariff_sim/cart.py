"""
Export cart: moves calculations out of a session's history into its cart.

A move runs through these states::

    START → FETCHED → DEDUPED → APPENDED → CLEANED
                                        ↘ CLEANUP_FAILED

APPENDED is the commit point.  The history cleanup that follows is
best-effort: a failure is logged and reported through the returned
:class:`CartMove`, never rolled back and never raised.  The calculation may
therefore remain visible in both the history and the cart.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from .errors import BadRequestError, NotFoundError
from .ledger import CalculationHistoryEntry
from .session_store import CART_ATTR, SessionStore

logger = logging.getLogger(__name__)


class MoveState(str, enum.Enum):
    START = "START"
    FETCHED = "FETCHED"
    DEDUPED = "DEDUPED"
    APPENDED = "APPENDED"
    CLEANED = "CLEANED"
    CLEANUP_FAILED = "CLEANUP_FAILED"


@dataclass
class CartMove:
    entry: CalculationHistoryEntry
    state: MoveState
    cleanup_error: str | None = None

    def as_dict(self) -> dict:
        return {
            "item": self.entry.as_dict(),
            "state": self.state.value,
            "cleanupError": self.cleanup_error,
        }


class ExportCartCoordinator:
    def __init__(self, store: SessionStore, ledger_client) -> None:
        self.store = store
        self.ledger_client = ledger_client

    def _load(self, session_id: str) -> list[dict]:
        return self.store.read(session_id, CART_ATTR) or []

    def add_to_cart(self, session_id: str, calculation_id: str) -> CartMove:
        state = MoveState.START

        # FETCH: absence or a transport failure aborts with no state change
        entry = self.ledger_client.get_by_id(session_id, calculation_id)
        if entry is None:
            raise NotFoundError("Calculation not found in history")
        state = self._advance(session_id, calculation_id, state, MoveState.FETCHED)

        cart = self._load(session_id)
        if any(item.get("id") == calculation_id for item in cart):
            raise BadRequestError("Item already in cart")
        state = self._advance(session_id, calculation_id, state, MoveState.DEDUPED)

        cart.append(entry.as_dict())
        self.store.write(session_id, CART_ATTR, cart)
        state = self._advance(session_id, calculation_id, state, MoveState.APPENDED)
        logger.info("Session %s: calculation %s added to export cart", session_id, calculation_id)

        try:
            self.ledger_client.remove_by_id(session_id, calculation_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Session %s: calculation %s is in the cart but could not be removed "
                "from history: %s", session_id, calculation_id, exc,
            )
            self._advance(session_id, calculation_id, state, MoveState.CLEANUP_FAILED)
            return CartMove(entry, MoveState.CLEANUP_FAILED, str(exc))

        self._advance(session_id, calculation_id, state, MoveState.CLEANED)
        return CartMove(entry, MoveState.CLEANED)

    @staticmethod
    def _advance(session_id: str, calculation_id: str, current: MoveState, new: MoveState) -> MoveState:
        logger.debug("Cart move %s/%s: %s → %s", session_id, calculation_id, current.value, new.value)
        return new

    def remove_from_cart(self, session_id: str, calculation_id: str) -> None:
        cart = self._load(session_id)
        if not cart:
            raise NotFoundError("Cart is empty")
        remaining = [item for item in cart if item.get("id") != calculation_id]
        if len(remaining) == len(cart):
            raise NotFoundError("Item not found in cart")
        self.store.write(session_id, CART_ATTR, remaining)

    def clear_cart(self, session_id: str) -> None:
        self.store.drop(session_id, CART_ATTR)

    def get_cart(self, session_id: str) -> list[CalculationHistoryEntry]:
        return [CalculationHistoryEntry.from_dict(item) for item in self._load(session_id)]
