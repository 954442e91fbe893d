"""
Ledger clients used by the export cart to reach a session's history.

``LocalLedgerClient`` talks to a ledger living in the same process.
``RemoteLedgerClient`` reaches another service instance over HTTP and can
address *any* session by its raw id, which is why it is kept separate from
the "current session" accessors of :mod:`tariff_sim.ledger`.

Both expose the same two calls:

  get_by_id(session_id, calculation_id)     -> entry | None
  remove_by_id(session_id, calculation_id)  -> None (absent id is a no-op)
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import requests

from . import http
from .errors import DataAccessError
from .ledger import CalculationHistoryEntry, CalculationHistoryLedger

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"


class LocalLedgerClient:
    def __init__(self, ledger: CalculationHistoryLedger) -> None:
        self.ledger = ledger

    def get_by_id(self, session_id: str, calculation_id: str) -> CalculationHistoryEntry | None:
        return self.ledger.get_by_id(session_id, calculation_id)

    def remove_by_id(self, session_id: str, calculation_id: str) -> None:
        self.ledger.remove_by_id(session_id, calculation_id, missing_ok=True)


class RemoteLedgerClient:
    """HTTP client for the session-management history endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = http.DEFAULT_TIMEOUT,
        retries: int = 1,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self._session = session or requests.Session()

    def _url(self, calculation_id: str) -> str:
        return f"{self.base_url}/api/tariff/history/{quote(calculation_id, safe='')}"

    def _call(self, method: str, session_id: str, calculation_id: str) -> requests.Response:
        try:
            return http.request(
                method,
                self._url(calculation_id),
                timeout=self.timeout,
                retries=self.retries,
                headers={SESSION_HEADER: session_id},
                params={"sessionId": session_id},
                accept=(404,),
                session=self._session,
            )
        except http.NetworkError as exc:
            raise DataAccessError(
                f"Failed to {method} calculation {calculation_id} from session-management service",
                exc,
            ) from exc

    def get_by_id(self, session_id: str, calculation_id: str) -> CalculationHistoryEntry | None:
        resp = self._call("GET", session_id, calculation_id)
        if resp.status_code == 404:
            return None
        try:
            body = resp.json()
        except ValueError as exc:
            raise DataAccessError("Cannot decode calculation returned by session-management service",
                                  http.ParseError(str(exc))) from exc
        if not isinstance(body, dict):
            return None
        return CalculationHistoryEntry.from_dict(body)

    def remove_by_id(self, session_id: str, calculation_id: str) -> None:
        resp = self._call("DELETE", session_id, calculation_id)
        if resp.status_code == 404:
            logger.debug("Remote ledger: calculation %s already absent from session %s",
                         calculation_id, session_id)
