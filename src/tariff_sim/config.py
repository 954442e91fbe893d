"""Configuration loader with ENV:VAR_NAME resolution."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""


def _resolve(value: Any) -> Any:
    """Recursively resolve ENV:VAR_NAME references."""
    if isinstance(value, str) and value.startswith("ENV:"):
        var = value[4:]
        resolved = os.environ.get(var)
        if resolved is None:
            logger.debug("Environment variable %s not set (value stays None)", var)
        return resolved
    if isinstance(value, dict):
        return {k: _resolve(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve(v) for v in value]
    return value


@dataclass
class DatabaseConfig:
    backend: str = "postgres"          # "postgres" | "memory"
    host: str = "localhost"
    port: int = 5432
    dbname: str = "tariff_sim"
    user: str = "tariff"
    password: str | None = "tariff"
    min_connections: int = 1
    max_connections: int = 10

    def dsn(self) -> str:
        return (
            f"host={self.host} port={self.port} dbname={self.dbname} "
            f"user={self.user} password={self.password or ''}"
        )


@dataclass
class SessionConfig:
    backend: str = "redis"             # "redis" | "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "spring:session:sessions:"
    ttl_seconds: int | None = 1800


@dataclass
class ServicesConfig:
    # Empty → the export cart reads the history ledger in-process.
    ledger_url: str = ""
    timeout_seconds: float = 10.0
    retries: int = 1


@dataclass
class HistoryConfig:
    max_entries: int = 100


@dataclass
class RuntimeConfig:
    log_level: str = "INFO"


@dataclass
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    services: ServicesConfig = field(default_factory=ServicesConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _build(raw: dict) -> AppConfig:
    cfg = AppConfig()

    dbc = raw.get("database") or {}
    cfg.database = DatabaseConfig(
        backend=str(dbc.get("backend") or "postgres").lower(),
        host=dbc.get("host") or "localhost",
        port=int(dbc.get("port") or 5432),
        dbname=dbc.get("dbname") or "tariff_sim",
        user=dbc.get("user") or "tariff",
        password=dbc.get("password"),
        min_connections=int(dbc.get("min_connections", 1)),
        max_connections=int(dbc.get("max_connections", 10)),
    )

    ses = raw.get("session") or {}
    cfg.session = SessionConfig(
        backend=str(ses.get("backend") or "redis").lower(),
        redis_url=ses.get("redis_url") or "redis://localhost:6379/0",
        key_prefix=ses.get("key_prefix") or "spring:session:sessions:",
        ttl_seconds=_int_or_none(ses.get("ttl_seconds", 1800)),
    )

    svc = raw.get("services") or {}
    cfg.services = ServicesConfig(
        ledger_url=svc.get("ledger_url") or "",
        timeout_seconds=float(svc.get("timeout_seconds", 10.0)),
        retries=max(int(svc.get("retries", 1)), 1),
    )

    hist = raw.get("history") or {}
    cfg.history = HistoryConfig(max_entries=int(hist.get("max_entries", 100)))

    rt = raw.get("runtime") or {}
    cfg.runtime = RuntimeConfig(
        log_level=rt.get("log_level") or "INFO",
    )

    if cfg.database.backend not in ("postgres", "memory"):
        raise ConfigError(f"Unknown database backend: {cfg.database.backend!r}")
    if cfg.session.backend not in ("redis", "memory"):
        raise ConfigError(f"Unknown session backend: {cfg.session.backend!r}")
    if cfg.history.max_entries < 1:
        raise ConfigError("history.max_entries must be at least 1")
    return cfg


def load_config(path: str | Path) -> AppConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    cfg = _build(_resolve(raw))
    logging.basicConfig(level=getattr(logging, cfg.runtime.log_level.upper(), logging.INFO))
    return cfg


def config_from_env() -> AppConfig:
    """Build a config purely from environment variables (container deployments)."""
    env = os.environ.get
    raw = {
        "database": {
            "backend": env("RATE_BACKEND"),
            "host": env("PGHOST"),
            "port": env("PGPORT"),
            "dbname": env("PGDATABASE"),
            "user": env("PGUSER"),
            "password": env("PGPASSWORD", "tariff"),
        },
        "session": {
            "backend": env("SESSION_BACKEND"),
            "redis_url": env("REDIS_URL"),
            "ttl_seconds": env("SESSION_TTL_SECONDS", "1800"),
        },
        "services": {
            "ledger_url": env("LEDGER_URL"),
            "timeout_seconds": env("LEDGER_TIMEOUT_SECONDS", "10"),
        },
        "history": {"max_entries": env("HISTORY_MAX_ENTRIES", "100")},
        "runtime": {
            "log_level": env("LOG_LEVEL"),
        },
    }
    return _build(raw)
