"""Tests for ledger_client.py"""

from unittest import mock

import pytest
import requests

from tariff_sim.errors import DataAccessError
from tariff_sim.ledger import CalculationHistoryLedger
from tariff_sim.ledger_client import LocalLedgerClient, RemoteLedgerClient
from tariff_sim.session_store import MemorySessionStore

SAMPLE_ENTRY = {
    "id": "calc-1",
    "product": "Laptop",
    "exportingFrom": "China",
    "importingTo": "USA",
    "productCost": 20.0,
    "totalCost": 23.0,
    "tariffAmount": 3.0,
}


def _response(status, body=None):
    resp = mock.Mock(spec=requests.Response)
    resp.status_code = status
    resp.json.return_value = body
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
    return resp


def _client(*responses, error=None):
    session = mock.Mock(spec=requests.Session)
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.side_effect = list(responses)
    return RemoteLedgerClient("http://ledger:8080/", session=session), session


def test_remote_get_addresses_session_explicitly():
    client, session = _client(_response(200, SAMPLE_ENTRY))
    entry = client.get_by_id("sess-9", "calc-1")
    assert entry.id == "calc-1"
    assert entry.product == "Laptop"
    args, kwargs = session.request.call_args
    assert args == ("GET", "http://ledger:8080/api/tariff/history/calc-1")
    assert kwargs["params"] == {"sessionId": "sess-9"}
    assert kwargs["headers"] == {"X-Session-Id": "sess-9"}


def test_remote_get_404_is_none():
    client, _ = _client(_response(404))
    assert client.get_by_id("sess-9", "calc-1") is None


def test_remote_delete_404_is_noop():
    client, session = _client(_response(404))
    client.remove_by_id("sess-9", "calc-1")
    assert session.request.call_args[0][0] == "DELETE"


def test_remote_connection_error_becomes_data_access_error():
    client, session = _client(error=requests.exceptions.ConnectionError("refused"))
    with pytest.raises(DataAccessError):
        client.get_by_id("sess-9", "calc-1")
    # no automatic retry
    assert session.request.call_count == 1


def test_remote_server_error_becomes_data_access_error():
    client, _ = _client(_response(500))
    with pytest.raises(DataAccessError):
        client.remove_by_id("sess-9", "calc-1")


def test_remote_bad_body_becomes_data_access_error():
    resp = _response(200)
    resp.json.side_effect = ValueError("Expecting value")
    client, _ = _client(resp)
    with pytest.raises(DataAccessError, match="Cannot decode"):
        client.get_by_id("sess-9", "calc-1")


def test_local_remove_missing_is_noop():
    ledger = CalculationHistoryLedger(MemorySessionStore())
    client = LocalLedgerClient(ledger)
    client.remove_by_id("s1", "missing")
    assert client.get_by_id("s1", "missing") is None
