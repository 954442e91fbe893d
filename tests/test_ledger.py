"""Tests for ledger.py"""

import pytest

from tariff_sim.errors import NotFoundError, ValidationError
from tariff_sim.ledger import CalculationHistoryLedger, entry_from_calculation
from tariff_sim.session_store import MemorySessionStore

SAMPLE_CALCULATION = {
    "data": {
        "product": "Laptop",
        "brand": "Acme",
        "exportingFrom": "China",
        "importingTo": "USA",
        "quantity": 2,
        "unit": "piece",
        "productCost": 20.0,
        "totalCost": 23.0,
        "tariffRate": 15.0,
        "tariffAmount": 999.0,
        "tariffType": "MFN (no FTA)",
    }
}


def _calc(product):
    data = dict(SAMPLE_CALCULATION["data"], product=product)
    return {"data": data}


def test_tariff_amount_is_recomputed():
    entry = entry_from_calculation(SAMPLE_CALCULATION)
    assert entry.tariff_amount == pytest.approx(3.0)
    assert entry.source == "global"
    assert entry.id
    assert entry.created_at


@pytest.mark.parametrize("payload", [None, {}, {"data": None}, {"data": "oops"}, {"result": {}}])
def test_malformed_payload_records_nothing(payload):
    ledger = CalculationHistoryLedger(MemorySessionStore())
    assert ledger.append("s1", payload) is None
    assert ledger.list("s1") == []


def test_non_numeric_field_is_rejected():
    bad = {"data": dict(SAMPLE_CALCULATION["data"], productCost="twenty")}
    with pytest.raises(ValidationError):
        entry_from_calculation(bad)


def test_append_prepends():
    ledger = CalculationHistoryLedger(MemorySessionStore())
    ledger.append("s1", _calc("first"))
    ledger.append("s1", _calc("second"))
    assert [e.product for e in ledger.list("s1")] == ["second", "first"]


def test_history_is_capped_at_100():
    ledger = CalculationHistoryLedger(MemorySessionStore())
    for i in range(101):
        ledger.append("s1", _calc(f"p{i}"))
    history = ledger.list("s1")
    assert len(history) == 100
    assert history[0].product == "p100"
    assert history[-1].product == "p1"
    assert all(e.product != "p0" for e in history)


def test_get_by_id():
    ledger = CalculationHistoryLedger(MemorySessionStore())
    entry = ledger.append("s1", SAMPLE_CALCULATION)
    assert ledger.get_by_id("s1", entry.id) == entry
    assert ledger.get_by_id("s1", "missing") is None
    assert ledger.get_by_id("s2", entry.id) is None


def test_remove_by_id():
    ledger = CalculationHistoryLedger(MemorySessionStore())
    entry = ledger.append("s1", SAMPLE_CALCULATION)
    assert ledger.remove_by_id("s1", entry.id) is True
    assert ledger.list("s1") == []
    with pytest.raises(NotFoundError, match="Calculation not found in history"):
        ledger.remove_by_id("s1", entry.id)
    assert ledger.remove_by_id("s1", entry.id, missing_ok=True) is False


def test_clear():
    ledger = CalculationHistoryLedger(MemorySessionStore())
    ledger.append("s1", SAMPLE_CALCULATION)
    ledger.clear("s1")
    assert ledger.list("s1") == []
