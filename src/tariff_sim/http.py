"""Unified HTTP client with timeout and optional retry / exponential backoff."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
DEFAULT_RETRIES = 1
BACKOFF_BASE = 2.0


class NetworkError(Exception):
    """Raised on unrecoverable HTTP / connectivity failures."""


class HttpStatusError(NetworkError):
    """Raised when the remote side answers with an unexpected status code."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(Exception):
    """Raised when response content cannot be parsed."""


def _backoff(attempt: int) -> float:
    return BACKOFF_BASE ** attempt


def request(
    method: str,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    retries: int = DEFAULT_RETRIES,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any = None,
    accept: tuple[int, ...] = (),
    session: requests.Session | None = None,
) -> requests.Response:
    """
    Send one request, retrying transport errors and 5xx up to *retries* times.

    Statuses listed in *accept* are returned to the caller instead of raising.
    Any other 4xx raises :class:`HttpStatusError` immediately (never retried).
    """
    client = session or requests.Session()
    last_exc: Exception | None = None

    for attempt in range(retries):
        try:
            resp = client.request(method, url, timeout=timeout, headers=headers,
                                  params=params, json=json)
            if resp.status_code in accept:
                return resp
            resp.raise_for_status()
            return resp
        except requests.exceptions.Timeout as exc:
            last_exc = exc
            logger.warning("Timeout on attempt %d/%d: %s %s", attempt + 1, retries, method, url)
        except requests.exceptions.ConnectionError as exc:
            last_exc = exc
            logger.warning("Connection error on attempt %d/%d: %s %s",
                           attempt + 1, retries, method, url)
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else 0
            if 400 <= status < 500:
                raise HttpStatusError(f"{method} {url} returned HTTP {status}", status) from exc
            last_exc = exc
            logger.warning("HTTP %s on attempt %d/%d: %s %s",
                           status or "?", attempt + 1, retries, method, url)

        if attempt < retries - 1:
            wait = _backoff(attempt)
            logger.debug("Backing off %.1fs before retry…", wait)
            time.sleep(wait)

    raise NetworkError(f"Failed to {method} {url} after {retries} attempt(s): {last_exc}") from last_exc

