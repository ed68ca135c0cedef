import argparse
import asyncio
import json
import os
import sys
from datetime import date

import uvicorn

from recurring_ledger.app import build_services
from recurring_ledger.core import settings
from recurring_ledger.core.configuration import load_job_settings
from recurring_ledger.integration.store import init_store
from recurring_ledger.logger import get_logger, get_logging_config, setup_logging

logger = get_logger(__name__)


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{raw}', expected YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recurring-ledger",
        description="Recurring transaction materialization and account cleanup jobs.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP service with the daily scheduler.")
    serve.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))

    run = commands.add_parser("run-recurring", help="Materialize due recurring transactions once.")
    run.add_argument("--date", type=_parse_date, default=None, help="Run as if today were DATE.")

    delete = commands.add_parser("delete-user", help="Delete a user's data and partnerships.")
    delete.add_argument("user_id")

    return parser


async def _run_recurring(run_date: date | None) -> int:
    job_settings = load_job_settings()
    services = build_services(init_store(job_settings), job_settings)
    report = await services.materializer.materialize_due_recurrences(run_date)
    print(json.dumps(report.model_dump(mode="json"), indent=2))
    return 1 if report.failed_users else 0


async def _delete_user(user_id: str) -> int:
    job_settings = load_job_settings()
    services = build_services(init_store(job_settings), job_settings)
    report = await services.account_cleanup.delete_user(user_id)
    print(json.dumps(report.model_dump(mode="json"), indent=2))
    return 0 if report.completed else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        uvicorn.run(
            "recurring_ledger.app:app",
            host=args.host,
            port=args.port,
            log_config=get_logging_config(),
        )
        return 0

    setup_logging()
    settings.log_environment()
    if args.command == "run-recurring":
        return asyncio.run(_run_recurring(args.date))
    return asyncio.run(_delete_user(args.user_id))


if __name__ == "__main__":
    sys.exit(main())
