"""CLI entry point: sync, verify, scheduler, status."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace

from scripts.okta_ingestion.config import load_config, load_okta_config
from scripts.okta_ingestion.db import Database
from scripts.okta_ingestion.errors import ConfigError, ProviderAuthenticationError
from scripts.okta_ingestion.logging_config import configure_logging

logger = logging.getLogger("ingestion.cli")


def cmd_sync(args: argparse.Namespace) -> None:
    """Run one Okta sync and store the graph."""
    from scripts.okta_ingestion.providers.okta import OktaProvider

    config = load_config()
    if args.minimum_rate_limit_remaining is not None:
        config = replace(
            config,
            okta=replace(
                config.okta,
                minimum_rate_limit_remaining=args.minimum_rate_limit_remaining,
            ),
        )
    db = Database(config.database)
    try:
        provider = OktaProvider(config, db)
        logger.info("Starting sync for %s", provider.PROVIDER_NAME)
        results = provider.sync_with_tracking()
        logger.info("Sync results for %s: %s", provider.PROVIDER_NAME, results)
    finally:
        db.close()


def cmd_verify(args: argparse.Namespace) -> None:
    """Check the Okta org URL and API token with a single request."""
    from scripts.okta_ingestion.api_client import APIClient

    okta = load_okta_config()
    try:
        APIClient(okta).verify_authentication()
    except ProviderAuthenticationError as exc:
        logger.error("%s", exc, extra={"url": exc.endpoint})
        sys.exit(1)
    print(f"Authenticated against {okta.org_url}")


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based scheduling loop."""
    from scripts.okta_ingestion.scheduler import start_scheduler

    config = load_config()
    db = Database(config.database)
    try:
        start_scheduler(config, db)
    finally:
        db.close()


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent ingestion runs."""
    config = load_config()
    db = Database(config.database)
    try:
        runs = db.get_recent_runs(tenant_id=config.tenant_id, limit=args.limit)
        if not runs:
            print("No ingestion runs found.")
            return

        fmt = "{:<36}  {:<8}  {:<20}  {:<20}  {:>8}  {:>8}  {}"
        print(fmt.format(
            "RUN ID", "STATUS", "STARTED", "FINISHED", "UPSERTED", "DELETED", "ERROR",
        ))
        print("-" * 140)
        for r in runs:
            started = str(r["started_at"])[:19] if r["started_at"] else ""
            finished = str(r["finished_at"])[:19] if r["finished_at"] else ""
            print(fmt.format(
                str(r["id"])[:36],
                r["status"],
                started,
                finished,
                r.get("records_upserted") or 0,
                r.get("records_deleted") or 0,
                (r.get("error_message") or "")[:40],
            ))
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="okta-ingestion",
        description="Okta identity graph ingestion",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run one-shot sync")
    sync_parser.add_argument(
        "--minimum-rate-limit-remaining",
        type=int,
        default=None,
        help="Throttle when x-rate-limit-remaining drops to this value "
             "(default: OKTA_MINIMUM_RATE_LIMIT_REMAINING or 5)",
    )
    sync_parser.set_defaults(func=cmd_sync)

    verify_parser = subparsers.add_parser("verify", help="Check Okta credentials")
    verify_parser.set_defaults(func=cmd_verify)

    sched_parser = subparsers.add_parser("scheduler", help="Start scheduled sync loop")
    sched_parser.set_defaults(func=cmd_scheduler)

    status_parser = subparsers.add_parser("status", help="Show recent ingestion runs")
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.set_defaults(func=cmd_status)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(2)


if __name__ == "__main__":
    main()
