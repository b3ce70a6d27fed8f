from __future__ import annotations

import json

import pytest

from investor_leasing.api import handle
from investor_leasing.config import Settings, load_settings
from investor_leasing.errors import ScenarioNotFoundError
from investor_leasing.storage import ScenarioStore


@pytest.fixture()
def store(tmp_path):
    return ScenarioStore(f"sqlite:///{tmp_path / 'calculations.sqlite3'}")


def _calculate_body(**overrides):
    body = {
        "name": "Fleet van",
        "loanParams": {
            "totalAmount": 150_000,
            "interestRate": 8.5,
            "termMonths": 48,
            "startDate": "2024-01-01",
        },
        "investors": [
            {"id": 1, "name": "Investor 1", "investmentAmount": 75_000},
            {"id": 2, "name": "Investor 2", "investmentAmount": 45_000},
            {"id": 3, "name": "Investor 3", "investmentAmount": 30_000},
        ],
        "businessParams": {
            "assetCost": 150_000,
            "lessorProfitMarginPct": 10,
            "securityDepositMonths": 1,
            "residualValueRate": 10,
            "discountRate": 6,
        },
    }
    body.update(overrides)
    return body


def _call(store, method, path, body=None):
    return handle(method, path, body, store=store, settings=Settings())


def test_store_crud(store):
    cid = store.create("first", {"a": 1}, {"b": 2})
    record = store.get(cid)
    assert record["name"] == "first"
    assert record["request"] == {"a": 1}
    assert [r["id"] for r in store.list_all()] == [cid]

    updated = store.update(cid, "renamed", {"a": 3}, {"b": 4})
    assert updated["name"] == "renamed"
    assert store.get(cid)["result"] == {"b": 4}

    store.delete(cid)
    with pytest.raises(ScenarioNotFoundError):
        store.get(cid)
    with pytest.raises(ScenarioNotFoundError):
        store.delete(cid)


def test_store_settings_round_trip(store):
    assert store.get_settings("abc") is None
    store.put_settings("abc", [{"name": "A"}], {"assetCost": 1}, None)
    saved = store.put_settings("abc", [{"name": "B"}], {"assetCost": 2}, {"discountRate": 5})
    assert saved["investors"] == [{"name": "B"}]
    assert saved["renter_config"] == {"discountRate": 5}
    assert store.get_settings("abc") == saved


def test_health(store):
    assert _call(store, "GET", "/health") == (200, {"status": "ok"})


def test_calculate_returns_schedule_returns_and_leasing(store):
    status, payload = _call(store, "POST", "/api/calculate", _calculate_body())
    assert status == 200
    assert len(payload["payment_schedule"]) == 48
    assert payload["end_date"] == "2028-01-01"
    assert len(payload["investor_returns"]) == 3
    assert payload["leasing"]["residual_value_amount"] == pytest.approx(15_000.0)
    assert payload["metrics"]["internal_rate_of_return"]["converged"] is True
    assert "calculation_id" not in payload
    json.dumps(payload)


def test_saved_calculation_lifecycle(store):
    status, payload = _call(store, "POST", "/api/calculate", _calculate_body(save=True))
    assert status == 200
    cid = payload["calculation_id"]

    status, listing = _call(store, "GET", "/api/calculations")
    assert status == 200 and listing[0]["name"] == "Fleet van"

    status, record = _call(store, "GET", f"/api/calculations/{cid}")
    assert status == 200
    assert record["request"]["loanParams"]["principal"] == 150_000

    body = _calculate_body(name="Renamed")
    body["loanParams"]["interestRate"] = 9.0
    status, record = _call(store, "PUT", f"/api/calculations/{cid}", body)
    assert status == 200 and record["name"] == "Renamed"

    assert _call(store, "DELETE", f"/api/calculations/{cid}")[0] == 200
    status, err = _call(store, "GET", f"/api/calculations/{cid}")
    assert status == 404 and "not found" in err["error"]


def test_create_calculation_endpoint(store):
    status, record = _call(store, "POST", "/api/calculations", _calculate_body())
    assert status == 201
    assert record["result"]["monthly_payment"] > 0


def test_calculate_rejects_bad_input(store):
    status, err = _call(store, "POST", "/api/calculate", {"investors": []})
    assert status == 400 and err["details"]
    status, err = _call(store, "POST", "/api/calculate", ["not", "an", "object"])
    assert status == 400 and err["error"] == "Expected JSON object body"
    status, err = _call(
        store, "POST", "/api/calculate", _calculate_body(investors=[{"name": "A", "investmentAmount": 1}])
    )
    assert status == 400 and "loan amount" in err["error"]


def test_leasing_endpoint(store):
    body = {
        "startDate": "2024-01-01",
        "assetCost": 100_000,
        "leaseTermMonths": 36,
        "investorLoanAmount": 80_000,
        "investorAnnualRatePct": 8,
        "clientAnnualRatePct": 12,
        "lessorProfitMarginPct": 5,
    }
    status, payload = _call(store, "POST", "/api/leasing", body)
    assert status == 200
    assert len(payload["cash_flow_schedule"]) == 37
    assert payload["payback_period"]["status"] in {"reached", "never", "n/a"}
    json.dumps(payload)


def test_metrics_endpoint(store):
    status, payload = _call(
        store, "POST", "/api/metrics", {"principal": 100_000, "annualRatePct": 10, "termMonths": 36}
    )
    assert status == 200
    assert payload["internal_rate_of_return"]["rate"] == pytest.approx(0.10, abs=1e-8)
    assert payload["payback_period"]["label"] == "31.0 months"


def test_metrics_endpoint_uses_configured_irr_bracket(store):
    settings = load_settings({"INVESTOR_LEASING_IRR_UPPER": "0.001"})
    body = {"principal": 100_000, "annualRatePct": 10, "termMonths": 36}
    status, payload = handle("POST", "/api/metrics", body, store=store, settings=settings)
    assert status == 200
    assert payload["internal_rate_of_return"]["converged"] is False
    assert payload["internal_rate_of_return"]["rate"] is None


def test_user_settings_endpoints(store):
    assert _call(store, "GET", "/api/user-settings/session-1")[0] == 404
    body = {
        "investors": [{"name": "A", "investmentAmount": 10_000}],
        "businessParams": {"assetCost": 10_000},
    }
    status, saved = _call(store, "PUT", "/api/user-settings/session-1", body)
    assert status == 200
    status, loaded = _call(store, "GET", "/api/user-settings/session-1")
    assert loaded["investors"][0]["investmentAmount"] == 10_000
    assert loaded["renter_config"] is None


def test_unknown_route(store):
    assert _call(store, "GET", "/api/nope")[0] == 404
    assert _call(store, "PATCH", "/api/calculations")[0] == 405
