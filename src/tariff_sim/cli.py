"""Command-line entry point for Tariff Sim."""

from __future__ import annotations

import argparse
import json
import logging
import sys

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tariff-sim",
        description="Manage the tariff rate table and inspect resolved tariff definitions.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: build configuration from environment variables)",
    )
    sub = parser.add_subparsers(dest="command")

    # ── init-db ────────────────────────────────────────────────────────────
    sub.add_parser("init-db", help="Create the rate and product tables (idempotent).")

    # ── import-rates ───────────────────────────────────────────────────────
    import_cmd = sub.add_parser("import-rates", help="Upsert weighted rates from a CSV extract.")
    import_cmd.add_argument(
        "--csv",
        required=True,
        metavar="PATH",
        help="CSV with columns country, partner, ahs_weighted, mfn_weighted [, hs_code, year]",
    )

    # ── resolve ────────────────────────────────────────────────────────────
    resolve_cmd = sub.add_parser(
        "resolve",
        help="Show the effective tariff type and rate for a reporter/partner pair.",
    )
    resolve_cmd.add_argument("--reporter", required=True, help="Importing (reporter) country")
    resolve_cmd.add_argument("--partner", required=True, help="Exporting (partner) country")
    resolve_cmd.add_argument("--json", dest="output_json", action="store_true", help="Output JSON only.")

    # ── definitions ────────────────────────────────────────────────────────
    defs_cmd = sub.add_parser("definitions", help="List the global tariff definitions.")
    defs_cmd.add_argument("--json", dest="output_json", action="store_true", help="Output JSON only.")

    return parser


def _load(args: argparse.Namespace):
    from .config import ConfigError, config_from_env, load_config

    try:
        return load_config(args.config) if args.config else config_from_env()
    except (ConfigError, ValueError) as exc:
        print(f"[ERROR] Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)


def _connect(cfg) -> None:
    if cfg.database.backend != "postgres":
        return
    from .db import init_pool

    try:
        init_pool(cfg.database.min_connections, cfg.database.max_connections, cfg.database.dsn())
    except Exception as exc:  # noqa: BLE001
        print(f"[ERROR] Cannot connect to PostgreSQL: {exc}", file=sys.stderr)
        sys.exit(3)


def _rate_backends(cfg):
    from .products import MemoryProductCatalog, PostgresProductCatalog
    from .rates import MemoryRateTable, PostgresRateTable

    if cfg.database.backend == "memory":
        logger.warning("Memory rate backend selected: the rate table starts empty.")
        return MemoryRateTable(), MemoryProductCatalog()
    return PostgresRateTable(), PostgresProductCatalog()


# ---------------------------------------------------------------------------
# Sub-command implementations
# ---------------------------------------------------------------------------

def _cmd_init_db(args: argparse.Namespace) -> None:
    cfg = _load(args)
    if cfg.database.backend != "postgres":
        print("[ERROR] init-db requires the postgres database backend.", file=sys.stderr)
        sys.exit(2)
    _connect(cfg)

    from .db import apply_schema
    try:
        apply_schema()
    except Exception as exc:  # noqa: BLE001
        print(f"[ERROR] Schema creation failed: {exc}", file=sys.stderr)
        sys.exit(3)
    print("Schema applied.")


def _cmd_import_rates(args: argparse.Namespace) -> None:
    from .errors import DataAccessError
    from .rate_import import import_rates, load_rates_csv

    cfg = _load(args)
    try:
        entries = load_rates_csv(args.csv)
    except OSError as exc:
        print(f"[ERROR] Cannot read --csv: {exc}", file=sys.stderr)
        sys.exit(2)
    except ValueError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        sys.exit(2)

    _connect(cfg)
    rate_table, _ = _rate_backends(cfg)
    try:
        count = import_rates(rate_table, entries)
    except DataAccessError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        sys.exit(3)
    print(f"Imported {count} rate row(s) from {args.csv}")


def _cmd_resolve(args: argparse.Namespace) -> None:
    from .errors import DataAccessError, NotFoundError
    from .fta import is_preferential
    from .registry import TariffDefinitionRegistry

    cfg = _load(args)
    _connect(cfg)
    rate_table, _ = _rate_backends(cfg)
    try:
        resolved = TariffDefinitionRegistry(rate_table).resolve(args.reporter, args.partner)
    except NotFoundError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)
    except DataAccessError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        sys.exit(3)

    record = {"reporter": args.reporter, "partner": args.partner, **resolved.as_dict()}
    if args.output_json:
        print(json.dumps(record, indent=2, ensure_ascii=False))
        return

    fta = "yes" if is_preferential(args.reporter, args.partner) else "no"
    rate = f"{resolved.rate:.2f}%" if resolved.rate is not None else "N/A"
    print(f"  Route : {args.partner} → {args.reporter}")
    print(f"  FTA   : {fta}")
    print(f"  Type  : {resolved.type}")
    print(f"  Rate  : {rate}")


def _cmd_definitions(args: argparse.Namespace) -> None:
    from .errors import DataAccessError
    from .registry import TariffDefinitionRegistry

    cfg = _load(args)
    _connect(cfg)
    rate_table, products = _rate_backends(cfg)
    try:
        definitions = TariffDefinitionRegistry(rate_table).list_all_definitions(products.distinct_names())
    except DataAccessError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        sys.exit(3)

    records = [d.as_dict() for d in definitions]
    if args.output_json:
        print(json.dumps(records, indent=2, ensure_ascii=False))
        return

    SEP = "-" * 80
    print(SEP)
    print(f"  Tariff definitions  •  {len(records)} row(s)")
    print(SEP)
    for rec in records:
        print(
            f"  {rec['id']:>4}  {rec['product']:<20} {rec['exportingFrom']:>14} → "
            f"{rec['importingTo']:<14} {rec['type']:<4} {rec['rate']:.2f}%"
        )
    print(SEP)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    parser = _build_parser()
    args = parser.parse_args(argv)

    commands = {
        "init-db": _cmd_init_db,
        "import-rates": _cmd_import_rates,
        "resolve": _cmd_resolve,
        "definitions": _cmd_definitions,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(0)

    handler(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
