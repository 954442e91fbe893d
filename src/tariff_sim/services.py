"""Wire stores, registries and coordinators together from an :class:`AppConfig`."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .calculator import TariffCalculator
from .cart import ExportCartCoordinator
from .config import AppConfig
from .ledger import CalculationHistoryLedger
from .ledger_client import LocalLedgerClient, RemoteLedgerClient
from .overrides import SessionOverrideStore
from .products import MemoryProductCatalog, PostgresProductCatalog
from .rates import MemoryRateTable, PostgresRateTable
from .registry import TariffDefinitionRegistry
from .session_store import MemorySessionStore, RedisSessionStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    session_store: SessionStore
    rate_table: object
    products: object
    registry: TariffDefinitionRegistry
    overrides: SessionOverrideStore
    ledger: CalculationHistoryLedger
    cart: ExportCartCoordinator
    calculator: TariffCalculator


def assemble(
    session_store: SessionStore,
    rate_table,
    products,
    ledger_client=None,
    max_history: int = 100,
) -> Services:
    """Build the service graph from explicit backends (used by tests too)."""
    registry = TariffDefinitionRegistry(rate_table)
    overrides = SessionOverrideStore(session_store)
    ledger = CalculationHistoryLedger(session_store, max_entries=max_history)
    cart = ExportCartCoordinator(session_store, ledger_client or LocalLedgerClient(ledger))
    return Services(
        session_store=session_store,
        rate_table=rate_table,
        products=products,
        registry=registry,
        overrides=overrides,
        ledger=ledger,
        cart=cart,
        calculator=TariffCalculator(registry, products, overrides),
    )


def build_services(cfg: AppConfig) -> Services:
    if cfg.session.backend == "memory":
        session_store: SessionStore = MemorySessionStore()
    else:
        session_store = RedisSessionStore.from_url(
            cfg.session.redis_url,
            key_prefix=cfg.session.key_prefix,
            ttl_seconds=cfg.session.ttl_seconds,
        )

    if cfg.database.backend == "memory":
        rate_table, products = MemoryRateTable(), MemoryProductCatalog()
    else:
        rate_table, products = PostgresRateTable(), PostgresProductCatalog()

    ledger_client = None
    if cfg.services.ledger_url:
        ledger_client = RemoteLedgerClient(
            cfg.services.ledger_url,
            timeout=cfg.services.timeout_seconds,
            retries=cfg.services.retries,
        )
        logger.info("Export cart reads history from %s", cfg.services.ledger_url)

    return assemble(
        session_store,
        rate_table,
        products,
        ledger_client=ledger_client,
        max_history=cfg.history.max_entries,
    )
