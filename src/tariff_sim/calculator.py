"""
Tariff calculation in global or simulator mode.

Global mode quotes the rate resolved from the rate table.  Simulator mode
(``mode="user"``) quotes a rate override stored in the caller's session
instead; the rate table is never consulted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .definitions import TariffDefinition
from .errors import NotFoundError, ValidationError
from .fta import AHS

logger = logging.getLogger(__name__)

SIMULATOR_MODE = "user"


@dataclass
class BreakdownItem:
    description: str
    type: str
    rate: str
    amount: float

    def as_dict(self) -> dict[str, Any]:
        return {"description": self.description, "type": self.type,
                "rate": self.rate, "amount": round(self.amount, 2)}


@dataclass
class CalculationResult:
    product: str
    brand: str | None
    exporting_from: str
    importing_to: str
    quantity: float
    unit: str | None
    product_cost: float
    total_cost: float
    tariff_rate: float
    tariff_type: str
    source: str = "global"
    breakdown: list[BreakdownItem] = field(default_factory=list)

    @property
    def tariff_amount(self) -> float:
        return self.total_cost - self.product_cost

    def as_payload(self) -> dict[str, Any]:
        """Wire shape ``{"data": {...}}``, accepted as-is by the history ledger."""
        return {
            "data": {
                "product": self.product,
                "brand": self.brand,
                "exportingFrom": self.exporting_from,
                "importingTo": self.importing_to,
                "quantity": self.quantity,
                "unit": self.unit,
                "productCost": self.product_cost,
                "totalCost": self.total_cost,
                "tariffRate": self.tariff_rate,
                "tariffAmount": self.tariff_amount,
                "tariffType": self.tariff_type,
                "source": self.source,
                "breakdown": [b.as_dict() for b in self.breakdown],
            }
        }


def _require(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message)
    return value.strip()


def _unit_cost(custom_cost: str | float | None, catalog_cost: float | None) -> float:
    if custom_cost is not None and str(custom_cost).strip():
        try:
            return float(custom_cost)
        except ValueError as exc:
            raise ValidationError(f"Invalid custom cost format: {custom_cost}") from exc
    return catalog_cost if catalog_cost is not None else 0.0


def _breakdown(product_cost: float, label: str, rate: float, amount: float) -> list[BreakdownItem]:
    return [
        BreakdownItem("Product Cost", "Base Cost", "100%", product_cost),
        BreakdownItem(f"Import Tariff ({label})", "Tariff", f"{rate:.2f}%", amount),
    ]


class TariffCalculator:
    def __init__(self, registry, products, overrides) -> None:
        self.registry = registry
        self.products = products
        self.overrides = overrides

    def calculate(
        self,
        product: str,
        exporting_from: str,
        importing_to: str,
        quantity: float,
        custom_cost: str | float | None = None,
    ) -> CalculationResult:
        product = _require(product, "Product name is required")
        exporting_from = _require(exporting_from, "Exporting country is required")
        importing_to = _require(importing_to, "Importing country is required")
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        matches = self.products.find_by_name(product)
        if not matches:
            raise NotFoundError(f"Product not found: {product}")
        selected = matches[0]

        resolved = self.registry.resolve(importing_to, exporting_from)
        if resolved.rate is None:
            raise NotFoundError(
                f"Tariff rate not available for {exporting_from} → {importing_to}"
            )

        product_cost = _unit_cost(custom_cost, selected.cost) * quantity
        tariff_amount = product_cost * resolved.rate / 100
        preferential = resolved.type == AHS
        return CalculationResult(
            product=selected.name,
            brand=selected.brand,
            exporting_from=exporting_from,
            importing_to=importing_to,
            quantity=quantity,
            unit=selected.unit,
            product_cost=product_cost,
            total_cost=product_cost + tariff_amount,
            tariff_rate=resolved.rate,
            tariff_type="AHS (with FTA)" if preferential else "MFN (no FTA)",
            source="global",
            breakdown=_breakdown(product_cost, resolved.type, resolved.rate, tariff_amount),
        )

    def calculate_with_mode(
        self,
        product: str,
        exporting_from: str,
        importing_to: str,
        quantity: float,
        custom_cost: str | float | None = None,
        mode: str | None = None,
        user_tariff_id: str | None = None,
        session_id: str | None = None,
    ) -> CalculationResult:
        if not mode or mode.lower() != SIMULATOR_MODE:
            return self.calculate(product, exporting_from, importing_to, quantity, custom_cost)

        candidates = self.overrides.list(session_id) if session_id else []
        selected = _match_override(candidates, product, exporting_from, importing_to, user_tariff_id)
        if selected is None:
            raise NotFoundError("Selected user-defined tariff not found or not applicable")
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        matches = self.products.find_by_name(product)
        if not matches:
            raise NotFoundError("Product not found in database")
        catalog = matches[0]

        product_cost = _unit_cost(custom_cost, catalog.cost) * quantity
        tariff_amount = product_cost * selected.rate / 100
        logger.debug("Simulator quote for session %s uses override %s", session_id, selected.id)
        return CalculationResult(
            product=catalog.name,
            brand=catalog.brand,
            exporting_from=exporting_from,
            importing_to=importing_to,
            quantity=quantity,
            unit=catalog.unit,
            product_cost=product_cost,
            total_cost=product_cost + tariff_amount,
            tariff_rate=selected.rate,
            tariff_type=f"{selected.type} (user-defined)",
            source="simulator",
            breakdown=_breakdown(product_cost, selected.type or "", selected.rate, tariff_amount),
        )

    def compare(
        self,
        product: str,
        exporting_from: str,
        importing_to_list: list[str],
        quantity: float,
        custom_cost: str | float | None = None,
    ) -> "ComparisonResult":
        return _compare(self, product, exporting_from, importing_to_list, quantity, custom_cost)


def _match_override(
    candidates: list[TariffDefinition],
    product: str,
    exporting_from: str,
    importing_to: str,
    user_tariff_id: str | None,
) -> TariffDefinition | None:
    for dto in candidates:
        if user_tariff_id and dto.id != user_tariff_id:
            continue
        if (dto.product == product
                and dto.exporting_from == exporting_from
                and dto.importing_to == importing_to):
            return dto
    return None


# ── Multi-country comparison ──────────────────────────────────────────────────

@dataclass
class CountryComparison:
    country: str
    tariff_rate: float
    tariff_type: str
    product_cost: float
    tariff_amount: float
    has_fta: bool
    rank: int = 0

    @property
    def total_cost(self) -> float:
        return self.product_cost + self.tariff_amount

    def as_dict(self) -> dict[str, Any]:
        return {
            "country": self.country,
            "tariffRate": self.tariff_rate,
            "tariffType": self.tariff_type,
            "productCost": self.product_cost,
            "tariffAmount": self.tariff_amount,
            "totalCost": self.total_cost,
            "hasFTA": self.has_fta,
            "rank": self.rank,
        }


@dataclass
class ComparisonResult:
    product: str
    brand: str | None
    exporting_from: str
    quantity: float
    unit: str | None
    unit_cost: float
    comparisons: list[CountryComparison] = field(default_factory=list)
    currency: str = "USD"

    def as_payload(self) -> dict[str, Any]:
        rows = self.comparisons
        return {
            "data": {
                "product": self.product,
                "brand": self.brand,
                "exportingFrom": self.exporting_from,
                "quantity": self.quantity,
                "unit": self.unit,
                "productCostPerUnit": self.unit_cost,
                "currency": self.currency,
                "comparisons": [c.as_dict() for c in rows],
                "chartData": {
                    "countries": [c.country for c in rows],
                    "tariffRates": [c.tariff_rate for c in rows],
                    "tariffAmounts": [c.tariff_amount for c in rows],
                    "totalCosts": [c.total_cost for c in rows],
                    "tariffTypes": [c.tariff_type for c in rows],
                },
            }
        }


def _compare(
    calculator: TariffCalculator,
    product: str,
    exporting_from: str,
    importing_to_list: list[str],
    quantity: float,
    custom_cost: str | float | None = None,
) -> ComparisonResult:
    """
    Quote one product from one exporter into several importing countries.

    Countries without a rate row (or without the rate their route needs) are
    skipped. The remaining rows are ranked by total cost, cheapest first.
    """
    product = _require(product, "Product name is required")
    exporting_from = _require(exporting_from, "Exporting country is required")
    countries = [c.strip() for c in importing_to_list or [] if c and c.strip()]
    if not countries:
        raise ValidationError("At least one importing country is required")
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")

    matches = calculator.products.find_by_name(product)
    if not matches:
        raise NotFoundError(f"Product not found: {product}")
    selected = matches[0]
    unit_cost = _unit_cost(custom_cost, selected.cost)
    product_cost = unit_cost * quantity

    rows: list[CountryComparison] = []
    for importing_to in dict.fromkeys(countries):
        try:
            resolved = calculator.registry.resolve(importing_to, exporting_from)
        except NotFoundError:
            logger.debug("No rate row for %s → %s; skipped in comparison", exporting_from, importing_to)
            continue
        if resolved.rate is None:
            continue
        rows.append(
            CountryComparison(
                country=importing_to,
                tariff_rate=resolved.rate,
                tariff_type=resolved.type,
                product_cost=product_cost,
                tariff_amount=product_cost * resolved.rate / 100,
                has_fta=resolved.type == AHS,
            )
        )

    if not rows:
        raise NotFoundError("No tariff data available for the selected countries")

    rows.sort(key=lambda c: c.total_cost)
    for rank, row in enumerate(rows, start=1):
        row.rank = rank

    return ComparisonResult(
        product=selected.name,
        brand=selected.brand,
        exporting_from=exporting_from,
        quantity=quantity,
        unit=selected.unit,
        unit_cost=unit_cost,
        comparisons=rows,
    )
