"""Tests for api.py"""

import pytest
from fastapi.testclient import TestClient

from tariff_sim.api import app, get_services
from tariff_sim.products import MemoryProductCatalog, Product
from tariff_sim.rates import MemoryRateTable, RateEntry
from tariff_sim.services import assemble
from tariff_sim.session_store import MemorySessionStore

SAMPLE_PRODUCTS = [Product("Laptop", brand="Acme", cost=100.0, unit="piece")]
SAMPLE_RATES = [
    RateEntry("Singapore", "China", ahs_weighted=2.0, mfn_weighted=6.0),
    RateEntry("USA", "China", ahs_weighted=5.0, mfn_weighted=25.0),
    RateEntry("USA", "Canada", ahs_weighted=7.0, mfn_weighted=7.0),
]

ALICE = {"X-Session-Id": "alice"}
BOB = {"X-Session-Id": "bob"}


@pytest.fixture
def client():
    services = assemble(
        MemorySessionStore(),
        MemoryRateTable(SAMPLE_RATES),
        MemoryProductCatalog(SAMPLE_PRODUCTS),
    )
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def _quote(client, headers=ALICE, **params):
    query = {"product": "Laptop", "exportingFrom": "China", "importingTo": "USA", "quantity": 1}
    query.update(params)
    return client.get("/api/tariff", params=query, headers=headers)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_countries_and_partners(client):
    assert client.get("/api/countries").json() == ["Singapore", "USA"]
    assert client.get("/api/partners").json() == ["Canada", "China"]


def test_calculate_records_history(client):
    resp = _quote(client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["tariffRate"] == 25.0
    assert body["data"]["tariffType"] == "MFN (no FTA)"

    history = client.get("/api/tariff/history", headers=ALICE).json()
    assert [h["id"] for h in history] == [body["historyId"]]
    assert history[0]["tariffAmount"] == pytest.approx(25.0)
    assert client.get("/api/tariff/history", headers=BOB).json() == []


def test_calculate_unknown_route_is_404(client):
    resp = _quote(client, exportingFrom="Brazil")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_resolve(client):
    assert client.get("/api/tariff/resolve", params={"reporter": "Singapore", "partner": "China"}).json() == {
        "type": "AHS",
        "rate": 2.0,
    }
    assert client.get("/api/tariff/resolve", params={"reporter": "Chile", "partner": "Peru"}).status_code == 404


def test_save_calculation(client):
    resp = client.post("/api/tariff/history/save", json={}, headers=ALICE)
    assert resp.status_code == 400

    resp = client.post("/api/tariff/history/save", json={"calculationData": {"result": 1}}, headers=ALICE)
    assert resp.status_code == 200
    assert resp.json() is None

    resp = client.post(
        "/api/tariff/history/save",
        json={"calculationData": {"data": {"product": "Laptop", "productCost": 20, "totalCost": 23,
                                           "tariffAmount": 0}}},
        headers=ALICE,
    )
    assert resp.json()["tariffAmount"] == pytest.approx(3.0)


def test_history_entry_by_id_and_delete(client):
    history_id = _quote(client).json()["historyId"]
    assert client.get(f"/api/tariff/history/{history_id}", headers=ALICE).status_code == 200
    # addressed explicitly by session id
    assert client.get(f"/api/tariff/history/{history_id}", params={"sessionId": "alice"},
                      headers=BOB).status_code == 200
    assert client.get(f"/api/tariff/history/{history_id}", headers=BOB).status_code == 404

    assert client.delete(f"/api/tariff/history/{history_id}", headers=ALICE).status_code == 200
    assert client.delete(f"/api/tariff/history/{history_id}", headers=ALICE).status_code == 404


def test_clear_history(client):
    _quote(client)
    assert client.delete("/api/tariff/history/clear", headers=ALICE).json() == {"success": True}
    assert client.get("/api/tariff/history", headers=ALICE).json() == []


def test_cart_flow(client):
    assert client.get("/api/export-cart", headers=ALICE).status_code == 204

    history_id = _quote(client).json()["historyId"]
    resp = client.post(f"/api/export-cart/add/{history_id}", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["state"] == "CLEANED"
    assert client.get("/api/tariff/history", headers=ALICE).json() == []

    cart = client.get("/api/export-cart", headers=ALICE).json()
    assert [c["id"] for c in cart] == [history_id]

    resp = client.post(f"/api/export-cart/add/{history_id}", headers=ALICE)
    assert resp.status_code == 404

    export = client.get("/api/export-cart/export", headers=ALICE)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=\"export_cart_" in export.headers["content-disposition"]
    assert export.text.splitlines()[0].startswith("ID,Product,Brand")

    assert client.delete("/api/export-cart/remove/nope", headers=ALICE).status_code == 404
    assert client.delete(f"/api/export-cart/remove/{history_id}", headers=ALICE).status_code == 200
    assert client.get("/api/export-cart", headers=ALICE).status_code == 204


def test_admin_overrides(client):
    resp = client.post(
        "/api/tariff-definitions/modified",
        json={"product": "Laptop", "importingTo": "USA", "exportingFrom": "Brazil", "type": "MFN", "rate": 9},
    )
    assert resp.status_code == 200
    created = resp.json()["data"][0]
    assert created["id"] == "USA_Brazil"

    listed = client.get("/api/tariff-definitions/modified").json()["data"]
    assert [d["id"] for d in listed] == ["USA_Brazil"]

    bad = client.put(
        "/api/tariff-definitions/modified/USABrazil",
        json={"importingTo": "USA", "exportingFrom": "Brazil", "type": "MFN", "rate": 3},
    )
    assert bad.status_code == 400
    assert bad.json()["error"] == "Invalid tariff ID format"

    negative = client.post(
        "/api/tariff-definitions/modified",
        json={"importingTo": "USA", "exportingFrom": "Brazil", "type": "MFN", "rate": -3},
    )
    assert negative.status_code == 400

    assert client.delete("/api/tariff-definitions/modified/USA_Brazil").status_code == 200
    assert client.delete("/api/tariff-definitions/modified/USA_Brazil").status_code == 404


def test_global_definitions_listing(client):
    data = client.get("/api/tariff-definitions").json()["data"]
    routes = {(d["importingTo"], d["exportingFrom"]) for d in data}
    assert routes == {("Singapore", "China"), ("USA", "Canada")}


def test_simulator_overrides_and_user_mode(client):
    resp = client.post(
        "/api/tariff-definitions/user",
        json={"product": "Laptop", "importingTo": "USA", "exportingFrom": "China", "type": "MFN", "rate": 10},
        headers=ALICE,
    )
    saved = resp.json()["data"][0]
    assert saved["id"]

    quote = _quote(client, mode="user", userTariffId=saved["id"]).json()
    assert quote["data"]["tariffRate"] == 10.0
    assert quote["data"]["source"] == "simulator"
    assert _quote(client, headers=BOB, mode="user").status_code == 404

    assert client.put(f"/api/tariff-definitions/user/{saved['id']}",
                      json={"product": "Laptop", "importingTo": "USA", "exportingFrom": "China",
                            "type": "MFN", "rate": 12},
                      headers=ALICE).json()["data"][0]["rate"] == 12.0
    assert client.delete("/api/tariff-definitions/user/missing", headers=ALICE).status_code == 404
    assert client.delete("/api/tariff-definitions/user", headers=ALICE).status_code == 200
    assert client.get("/api/tariff-definitions/user", headers=ALICE).json()["data"] == []


def test_new_visitor_gets_session_cookie(client):
    resp = client.get("/api/tariff/history")
    assert resp.status_code == 200
    assert "SESSION" in resp.cookies


def test_admin_override_rejects_nan_rate(client):
    resp = client.post(
        "/api/tariff-definitions/modified",
        content='{"importingTo": "USA", "exportingFrom": "Brazil", "type": "AHS", "rate": NaN}',
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert client.get("/api/tariff-definitions/modified").json()["data"] == []
    assert client.get("/api/tariff/resolve", params={"reporter": "USA", "partner": "Brazil"}).status_code == 404


def test_compare_endpoint(client):
    resp = client.get(
        "/api/tariff/compare",
        params={"product": "Laptop", "exportingFrom": "China", "importingTo": "USA,Singapore"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [c["country"] for c in data["comparisons"]] == ["Singapore", "USA"]
    assert data["comparisons"][0]["rank"] == 1

    repeated = client.get(
        "/api/tariff/compare",
        params=[("product", "Laptop"), ("exportingFrom", "China"), ("importingTo", "USA"), ("importingTo", "Peru")],
    )
    assert [c["country"] for c in repeated.json()["data"]["comparisons"]] == ["USA"]

    missing = client.get(
        "/api/tariff/compare",
        params={"product": "Laptop", "exportingFrom": "China", "importingTo": "Peru"},
    )
    assert missing.status_code == 404


@pytest.mark.parametrize("path", ["/api/export-cart", "/api/export-cart/export"])
def test_empty_cart_still_issues_session_cookie(client, path):
    resp = client.get(path)
    assert resp.status_code == 204
    assert resp.cookies.get("SESSION")
