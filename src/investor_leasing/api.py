"""
Framework-free request routing for the HTTP server.

`handle` takes an already-decoded JSON body and returns `(status, payload)`;
the server module only deals with sockets, headers and encoding.
"""
from __future__ import annotations

import json
import logging
import re
from http import HTTPStatus
from typing import Any

from pydantic import BaseModel, ValidationError

from investor_leasing.config import Settings
from investor_leasing.errors import FinancialModelError, ScenarioNotFoundError
from investor_leasing.financing.loan import calculate_monthly_payment
from investor_leasing.leasing.model import calculate_leasing_financials
from investor_leasing.metrics.engine import calculate_investment_metrics
from investor_leasing.scenario import ScenarioResult, calculate_scenario
from investor_leasing.schemas import (
    CalculateRequest,
    LeasingRequest,
    MetricsRequest,
    UserSettingsIn,
)
from investor_leasing.serialization import to_jsonable
from investor_leasing.storage import ScenarioStore

logger = logging.getLogger(__name__)

_CALCULATION_PATH = re.compile(r"^/api/calculations/(\d+)$")
_USER_SETTINGS_PATH = re.compile(r"^/api/user-settings/([A-Za-z0-9_.-]{1,128})$")


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def calculation_payload(result: ScenarioResult) -> dict[str, Any]:
    """Response body of a loan calculation; also what gets saved with a record."""
    return {
        "monthly_payment": result.periodic_payment,
        "total_interest": result.total_interest,
        "end_date": to_jsonable(result.end_date),
        "summary": to_jsonable(result.summary),
        "payment_schedule": to_jsonable(result.schedule),
        "investor_returns": to_jsonable(result.investor_returns),
        "metrics": to_jsonable(result.metrics),
        "leasing": to_jsonable(result.leasing),
    }


def _calculate(body: dict[str, Any], settings: Settings) -> tuple[CalculateRequest, str, dict[str, Any]]:
    req = CalculateRequest.model_validate(body)
    scenario = req.to_scenario(settings)
    return req, scenario.name, calculation_payload(calculate_scenario(scenario, irr_options=settings.irr_options()))


class _BadRequest(Exception):
    pass


def _require_object(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise _BadRequest("Expected JSON object body")
    return body


def _route(method: str, path: str, body: Any, store: ScenarioStore, settings: Settings) -> tuple[int, Any]:
    if path == "/health":
        if method != "GET":
            return HTTPStatus.METHOD_NOT_ALLOWED, {"error": "Method not allowed"}
        return HTTPStatus.OK, {"status": "ok"}

    if path == "/api/calculate" and method == "POST":
        body = _require_object(body)
        req, name, payload = _calculate(body, settings)
        if body.get("save"):
            payload["calculation_id"] = store.create(name, _dump(req), payload)
        return HTTPStatus.OK, payload

    if path == "/api/leasing" and method == "POST":
        inputs, start = LeasingRequest.model_validate(_require_object(body)).to_core()
        return HTTPStatus.OK, to_jsonable(calculate_leasing_financials(inputs, start, irr_options=settings.irr_options()))

    if path == "/api/metrics" and method == "POST":
        req = MetricsRequest.model_validate(_require_object(body))
        payment = req.payment
        if payment is None:
            payment = calculate_monthly_payment(req.principal, req.annual_rate_pct, req.term_months)
        metrics = calculate_investment_metrics(
            req.principal,
            req.annual_rate_pct,
            req.term_months,
            payment,
            req.asset_value,
            req.annual_revenue,
            discount_rate_pct=req.discount_rate_pct,
            irr_options=settings.irr_options(),
        )
        return HTTPStatus.OK, to_jsonable(metrics)

    if path == "/api/calculations":
        if method == "GET":
            return HTTPStatus.OK, store.list_all()
        if method == "POST":
            req, name, payload = _calculate(_require_object(body), settings)
            calculation_id = store.create(name, _dump(req), payload)
            return HTTPStatus.CREATED, store.get(calculation_id)
        return HTTPStatus.METHOD_NOT_ALLOWED, {"error": "Method not allowed"}

    m = _CALCULATION_PATH.match(path)
    if m:
        calculation_id = int(m.group(1))
        if method == "GET":
            return HTTPStatus.OK, store.get(calculation_id)
        if method == "PUT":
            req, name, payload = _calculate(_require_object(body), settings)
            return HTTPStatus.OK, store.update(calculation_id, name, _dump(req), payload)
        if method == "DELETE":
            store.delete(calculation_id)
            return HTTPStatus.OK, {"deleted": calculation_id}
        return HTTPStatus.METHOD_NOT_ALLOWED, {"error": "Method not allowed"}

    m = _USER_SETTINGS_PATH.match(path)
    if m:
        session_id = m.group(1)
        if method == "GET":
            saved = store.get_settings(session_id)
            if saved is None:
                return HTTPStatus.NOT_FOUND, {"error": f"no settings for session {session_id}"}
            return HTTPStatus.OK, saved
        if method == "PUT":
            req = UserSettingsIn.model_validate(_require_object(body))
            saved = store.put_settings(
                session_id,
                [_dump(inv) for inv in req.investors],
                _dump(req.business_params) if req.business_params is not None else None,
                _dump(req.renter_config) if req.renter_config is not None else None,
            )
            return HTTPStatus.OK, saved
        return HTTPStatus.METHOD_NOT_ALLOWED, {"error": "Method not allowed"}

    return HTTPStatus.NOT_FOUND, {"error": "Unknown endpoint"}


def handle(
    method: str,
    path: str,
    body: Any,
    *,
    store: ScenarioStore,
    settings: Settings,
) -> tuple[int, Any]:
    """
    Dispatch one API request.

    Client mistakes come back as 400/404 payloads of the form {"error": ...};
    anything else propagates so the server can log it and answer 500.
    """
    method = method.upper()
    path = path.split("?", 1)[0].rstrip("/") or "/"
    try:
        status, payload = _route(method, path, body, store, settings)
    except _BadRequest as e:
        status, payload = HTTPStatus.BAD_REQUEST, {"error": str(e)}
    except ValidationError as e:
        status, payload = HTTPStatus.BAD_REQUEST, {
            "error": "Invalid request",
            "details": json.loads(e.json(include_url=False)),
        }
    except ScenarioNotFoundError as e:
        status, payload = HTTPStatus.NOT_FOUND, {"error": str(e)}
    except FinancialModelError as e:
        status, payload = HTTPStatus.BAD_REQUEST, {"error": str(e)}
    logger.info("%s %s -> %d", method, path, int(status))
    return int(status), payload
