"""PostgreSQL connection pool and data-access helpers."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import psycopg2
import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

logger = logging.getLogger(__name__)

_pool: ThreadedConnectionPool | None = None

# ── Connection pool ──────────────────────────────────────────────────────────

def _dsn() -> str:
    """Build DSN from environment variables (Docker-friendly)."""
    return (
        f"host={os.environ.get('PGHOST', 'localhost')} "
        f"port={os.environ.get('PGPORT', '5432')} "
        f"dbname={os.environ.get('PGDATABASE', 'tariff_sim')} "
        f"user={os.environ.get('PGUSER', 'tariff')} "
        f"password={os.environ.get('PGPASSWORD', 'tariff')}"
    )


def init_pool(minconn: int = 1, maxconn: int = 10, dsn: str | None = None) -> None:
    """Initialise the global connection pool. Call once at application startup."""
    global _pool
    if _pool is not None:
        return
    _pool = ThreadedConnectionPool(minconn, maxconn, dsn=dsn or _dsn())
    logger.info("PostgreSQL pool initialised (min=%d max=%d)", minconn, maxconn)


def close_pool() -> None:
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn() -> Generator[psycopg2.extensions.connection, None, None]:
    """Yield a connection from the pool, auto-commit or rollback on exit."""
    if _pool is None:
        init_pool()
    assert _pool is not None
    conn = _pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        _pool.putconn(conn)


# ── Schema bootstrap ─────────────────────────────────────────────────────────

def apply_schema() -> None:
    """Create tables if they don't exist (idempotent)."""
    sql = (Path(__file__).parent / "schema.sql").read_text(encoding="utf-8")
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(sql)
    logger.info("Schema applied.")


# ── Tariff rates ─────────────────────────────────────────────────────────────

_RATE_COLUMNS = "country, partner, hs_code, year, ahs_weighted, mfn_weighted"


def query_rate(country: str, partner: str) -> dict | None:
    """Return the rate row for (*country*, *partner*) or None."""
    sql = f"""
        SELECT {_RATE_COLUMNS}
        FROM tariff_rates
        WHERE country = %(country)s AND partner = %(partner)s
        LIMIT 1
    """
    with get_conn() as conn:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, {"country": country, "partner": partner})
            row = cur.fetchone()
            return dict(row) if row else None


def query_all_rates() -> list[dict]:
    sql = f"SELECT {_RATE_COLUMNS} FROM tariff_rates ORDER BY country, partner"
    with get_conn() as conn:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql)
            return [dict(r) for r in cur.fetchall()]


def upsert_rates(rows: list[dict]) -> int:
    """
    Bulk-upsert rate rows keyed on (country, partner).
    Returns number of rows inserted/updated.
    """
    if not rows:
        return 0
    sql = f"""
        INSERT INTO tariff_rates ({_RATE_COLUMNS})
        VALUES (
            %(country)s, %(partner)s, %(hs_code)s, %(year)s,
            %(ahs_weighted)s, %(mfn_weighted)s
        )
        ON CONFLICT (country, partner) DO UPDATE SET
            hs_code      = EXCLUDED.hs_code,
            year         = EXCLUDED.year,
            ahs_weighted = EXCLUDED.ahs_weighted,
            mfn_weighted = EXCLUDED.mfn_weighted
    """
    with get_conn() as conn:
        with conn.cursor() as cur:
            psycopg2.extras.execute_batch(cur, sql, rows, page_size=500)
    return len(rows)


def delete_rate(country: str, partner: str) -> int:
    """Delete the rate row for (*country*, *partner*). Returns rows deleted."""
    sql = "DELETE FROM tariff_rates WHERE country = %(country)s AND partner = %(partner)s"
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, {"country": country, "partner": partner})
            return cur.rowcount


def query_distinct(column: str) -> list[str]:
    """Return the sorted distinct values of ``country`` or ``partner``."""
    if column not in ("country", "partner"):
        raise ValueError(f"Unsupported column: {column!r}")
    sql = f"SELECT DISTINCT {column} FROM tariff_rates ORDER BY {column}"
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(sql)
            return [r[0] for r in cur.fetchall()]


# ── Products ─────────────────────────────────────────────────────────────────

def query_products_by_name(name: str) -> list[dict]:
    sql = """
        SELECT name, brand, cost, unit
        FROM products
        WHERE name = %(name)s
        ORDER BY id
    """
    with get_conn() as conn:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, {"name": name})
            return [dict(r) for r in cur.fetchall()]


def query_distinct_products() -> list[str]:
    """Distinct product names (brands collapsed) for definition listings."""
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT DISTINCT name FROM products ORDER BY name")
            return [r[0] for r in cur.fetchall()]
