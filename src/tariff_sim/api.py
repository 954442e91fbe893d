"""FastAPI Web API for Tariff Sim."""

from __future__ import annotations

import logging
import os
import uuid
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .config import AppConfig, config_from_env, load_config
from .definitions import TariffDefinition
from .errors import BadRequestError, DataAccessError, NotFoundError, TariffSimError
from .export import export_filename, render_cart_csv
from .services import Services, build_services

logger = logging.getLogger(__name__)

SESSION_COOKIE = "SESSION"

app = FastAPI(
    title="Tariff Sim API",
    description=(
        "Quote import tariffs for a product/country pair, simulate alternative "
        "rates, and manage per-session calculation history and export cart."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


# ── Wiring ────────────────────────────────────────────────────────────────────

@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    path = os.environ.get("TARIFF_SIM_CONFIG")
    return load_config(path) if path else config_from_env()


@lru_cache(maxsize=1)
def _default_services() -> Services:
    return build_services(get_config())


def get_services() -> Services:
    return _default_services()


def get_session_id(
    request: Request,
    response: Response,
    x_session_id: str | None = Header(default=None),
) -> str:
    """Session id from ``X-Session-Id``, then the session cookie, else a new one."""
    if x_session_id and x_session_id.strip():
        return x_session_id.strip()
    cookie = request.cookies.get(SESSION_COOKIE)
    if cookie:
        return cookie
    session_id = str(uuid.uuid4())
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return session_id


@app.on_event("startup")
def startup() -> None:
    try:
        cfg = get_config()
        if cfg.database.backend == "postgres":
            from .db import apply_schema, init_pool
            init_pool(cfg.database.min_connections, cfg.database.max_connections, cfg.database.dsn())
            apply_schema()
            logger.info("Tariff Sim API started (PostgreSQL connected).")
    except Exception as e:
        logger.warning("PostgreSQL not available at startup: %s", e)


@app.on_event("shutdown")
def shutdown() -> None:
    from .db import close_pool
    close_pool()


@app.exception_handler(TariffSimError)
async def handle_domain_error(request: Request, exc: TariffSimError) -> JSONResponse:
    if isinstance(exc, DataAccessError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})


# ── Request bodies ────────────────────────────────────────────────────────────

class TariffDefinitionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    product: str | None = None
    exporting_from: str | None = Field(default=None, alias="exportingFrom")
    importing_to: str | None = Field(default=None, alias="importingTo")
    type: str | None = None
    rate: float = 0.0
    effective_date: str | None = Field(default=None, alias="effectiveDate")
    expiration_date: str | None = Field(default=None, alias="expirationDate")

    def to_definition(self) -> TariffDefinition:
        return TariffDefinition(**self.model_dump())


class SaveCalculationIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    calculation_data: dict[str, Any] | None = Field(default=None, alias="calculationData")


def _definitions(items: list[TariffDefinition]) -> dict[str, Any]:
    return {"success": True, "data": [d.as_dict() for d in items]}


def _carry_cookies(resp: Response, injected: Response) -> Response:
    """Copy cookies set on the injected response onto a response returned directly."""
    for value in injected.headers.getlist("set-cookie"):
        resp.headers.append("set-cookie", value)
    return resp


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/health", tags=["meta"])
def health(services: Services = Depends(get_services)) -> dict[str, str]:
    """Returns 200 OK; ``session_store`` reports whether the session store answers."""
    reachable = services.session_store.ping()
    return {"status": "ok", "version": __version__, "session_store": "up" if reachable else "down"}


# ── Countries ────────────────────────────────────────────────────────────────

@app.get("/api/countries", tags=["tariff"])
def countries(services: Services = Depends(get_services)) -> list[str]:
    return services.rate_table.distinct_countries()


@app.get("/api/partners", tags=["tariff"])
def partners(services: Services = Depends(get_services)) -> list[str]:
    return services.rate_table.distinct_partners()


# ── Calculation ──────────────────────────────────────────────────────────────

@app.get("/api/tariff", tags=["tariff"])
def calculate_tariff(
    product: str = Query(description="Product name"),
    exporting_from: str = Query(alias="exportingFrom"),
    importing_to: str = Query(alias="importingTo"),
    quantity: float = Query(default=1.0),
    custom_cost: str | None = Query(default=None, alias="customCost"),
    mode: str | None = Query(default=None, description="'user' for simulator mode"),
    user_tariff_id: str | None = Query(default=None, alias="userTariffId"),
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """
    Quote a tariff and record the result in the caller's calculation history.

    - Global mode resolves AHS for FTA routes and MFN otherwise.
    - ``mode=user`` quotes a simulator override stored in the session instead.

    **Example:** `/api/tariff?product=Laptop&exportingFrom=China&importingTo=Singapore&quantity=2`
    """
    result = services.calculator.calculate_with_mode(
        product, exporting_from, importing_to, quantity, custom_cost,
        mode=mode, user_tariff_id=user_tariff_id, session_id=session_id,
    )
    payload = result.as_payload()
    history_id = None
    try:
        entry = services.ledger.append(session_id, payload)
        history_id = entry.id if entry else None
    except DataAccessError as exc:
        logger.warning("Calculation not saved to history for session %s: %s", session_id, exc)
    return {"success": True, **payload, "historyId": history_id}


@app.get("/api/tariff/resolve", tags=["tariff"])
def resolve_tariff(
    reporter: str = Query(description="Importing (reporter) country"),
    partner: str = Query(description="Exporting (partner) country"),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return services.registry.resolve(reporter, partner).as_dict()


@app.get("/api/tariff/compare", tags=["tariff"])
def compare_tariffs(
    product: str = Query(description="Product name"),
    exporting_from: str = Query(alias="exportingFrom"),
    importing_to: list[str] = Query(alias="importingTo", description="Repeat or comma-separate"),
    quantity: float = Query(default=1.0),
    custom_cost: str | None = Query(default=None, alias="customCost"),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """
    Rank several importing countries by total landed cost for one product.

    **Example:** `/api/tariff/compare?product=Laptop&exportingFrom=China&importingTo=USA,Singapore`
    """
    countries = [c for value in importing_to for c in value.split(",")]
    result = services.calculator.compare(product, exporting_from, countries, quantity, custom_cost)
    return {"success": True, **result.as_payload()}


# ── Tariff definitions: global listing + admin overrides ──────────────────────

@app.get("/api/tariff-definitions", tags=["definitions"])
def list_definitions(services: Services = Depends(get_services)) -> dict[str, Any]:
    products = services.products.distinct_names()
    return _definitions(services.registry.list_all_definitions(products))


@app.get("/api/tariff-definitions/modified", tags=["definitions"])
def list_admin_overrides(services: Services = Depends(get_services)) -> dict[str, Any]:
    return _definitions(services.registry.list_admin_overrides())


@app.post("/api/tariff-definitions/modified", tags=["definitions"])
def add_admin_override(
    body: TariffDefinitionIn, services: Services = Depends(get_services)
) -> dict[str, Any]:
    return _definitions([services.registry.add_admin_override(body.to_definition())])


@app.put("/api/tariff-definitions/modified/{definition_id}", tags=["definitions"])
def update_admin_override(
    definition_id: str, body: TariffDefinitionIn, services: Services = Depends(get_services)
) -> dict[str, Any]:
    return _definitions([services.registry.update_admin_override(definition_id, body.to_definition())])


@app.delete("/api/tariff-definitions/modified/{definition_id}", tags=["definitions"])
def delete_admin_override(definition_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    services.registry.delete_admin_override(definition_id)
    return {"success": True}


# ── Tariff definitions: simulator (session) overrides ─────────────────────────

@app.get("/api/tariff-definitions/user", tags=["simulator"])
def list_user_definitions(
    session_id: str = Depends(get_session_id), services: Services = Depends(get_services)
) -> dict[str, Any]:
    return _definitions(services.overrides.list(session_id))


@app.post("/api/tariff-definitions/user", tags=["simulator"])
def save_user_definition(
    body: TariffDefinitionIn,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return _definitions([services.overrides.save(session_id, body.to_definition())])


@app.delete("/api/tariff-definitions/user", tags=["simulator"])
def clear_user_definitions(
    session_id: str = Depends(get_session_id), services: Services = Depends(get_services)
) -> dict[str, Any]:
    services.overrides.clear(session_id)
    return {"success": True}


@app.put("/api/tariff-definitions/user/{definition_id}", tags=["simulator"])
def update_user_definition(
    definition_id: str,
    body: TariffDefinitionIn,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return _definitions([services.overrides.update(session_id, definition_id, body.to_definition())])


@app.delete("/api/tariff-definitions/user/{definition_id}", tags=["simulator"])
def delete_user_definition(
    definition_id: str,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    services.overrides.delete(session_id, definition_id)
    return {"success": True}


# ── Calculation history ──────────────────────────────────────────────────────

@app.post("/api/tariff/history/save", tags=["history"])
def save_calculation(
    body: SaveCalculationIn,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any] | None:
    """Record a calculation. A payload without ``data`` creates nothing and returns null."""
    if body.calculation_data is None:
        raise BadRequestError("Calculation data is required")
    entry = services.ledger.append(session_id, body.calculation_data)
    return entry.as_dict() if entry else None


@app.get("/api/tariff/history", tags=["history"])
def list_history(
    session_id: str = Depends(get_session_id), services: Services = Depends(get_services)
) -> list[dict[str, Any]]:
    return [e.as_dict() for e in services.ledger.list(session_id)]


@app.delete("/api/tariff/history/clear", tags=["history"])
def clear_history(
    session_id: str = Depends(get_session_id), services: Services = Depends(get_services)
) -> dict[str, Any]:
    services.ledger.clear(session_id)
    return {"success": True}


@app.get("/api/tariff/history/{calculation_id}", tags=["history"])
def get_history_entry(
    calculation_id: str,
    target_session: str | None = Query(default=None, alias="sessionId"),
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Fetch one entry. ``sessionId`` addresses another session (cross-service reads)."""
    entry = services.ledger.get_by_id(target_session or session_id, calculation_id)
    if entry is None:
        raise NotFoundError("Calculation not found in history")
    return entry.as_dict()


@app.delete("/api/tariff/history/{calculation_id}", tags=["history"])
def delete_history_entry(
    calculation_id: str,
    target_session: str | None = Query(default=None, alias="sessionId"),
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    services.ledger.remove_by_id(target_session or session_id, calculation_id)
    return {"success": True}


# ── Export cart ──────────────────────────────────────────────────────────────

@app.get("/api/export-cart", tags=["export-cart"], response_model=None)
def get_cart(
    response: Response,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> Response | list[dict[str, Any]]:
    cart = services.cart.get_cart(session_id)
    if not cart:
        return _carry_cookies(Response(status_code=204), response)
    return [e.as_dict() for e in cart]


@app.post("/api/export-cart/add/{calculation_id}", tags=["export-cart"])
def add_to_cart(
    calculation_id: str,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """
    Move a calculation from history into the cart.

    The response is 200 once the cart holds the entry, even when removing it
    from history failed (``state`` is then ``CLEANUP_FAILED``).
    """
    move = services.cart.add_to_cart(session_id, calculation_id)
    return {"success": True, **move.as_dict()}


@app.delete("/api/export-cart/remove/{calculation_id}", tags=["export-cart"])
def remove_from_cart(
    calculation_id: str,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    services.cart.remove_from_cart(session_id, calculation_id)
    return {"success": True}


@app.delete("/api/export-cart/clear", tags=["export-cart"])
def clear_cart(
    session_id: str = Depends(get_session_id), services: Services = Depends(get_services)
) -> dict[str, Any]:
    services.cart.clear_cart(session_id)
    return {"success": True}


@app.get("/api/export-cart/export", tags=["export-cart"])
def export_cart(
    response: Response,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> Response:
    """Download the cart as CSV (204 when the cart is empty)."""
    cart = services.cart.get_cart(session_id)
    if not cart:
        return _carry_cookies(Response(status_code=204), response)
    csv_response = Response(
        content=render_cart_csv(cart),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )
    return _carry_cookies(csv_response, response)
