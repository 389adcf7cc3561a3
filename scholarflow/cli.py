"""
scholarflow.cli
===============

Operator commands.

Examples
--------
$ python -m scholarflow.cli init-db                 # first‑time table creation
$ python -m scholarflow.cli progress 12             # service quota for application 12
$ python -m scholarflow.cli cleanup-orphans --yes   # drop reports with broken links
$ python -m scholarflow.cli serve --reload          # HTTP API on SCHOLARFLOW_API_HOST:PORT
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from typing import List, Optional

from .db import create_all
from .errors import WorkflowError
from .settings import API_HOST, API_PORT, configure_logging
from .store import Store
from .workflow import WorkflowService

logger = logging.getLogger(__name__)


def _init_db(args: argparse.Namespace) -> int:
    create_all()
    print("✅ scholarflow schema initialised")
    return 0


def _progress(args: argparse.Namespace) -> int:
    with Store() as store:
        try:
            progress = WorkflowService(store).service_progress(args.application_id)
        except WorkflowError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
    print(
        f"application {args.application_id}: {progress.completed:g}/{progress.required} "
        f"service days, {progress.remaining:g} remaining"
    )
    return 0


def _cleanup_orphans(args: argparse.Namespace) -> int:
    with Store() as store:
        orphans = store.orphan_reports()
        if not orphans:
            print("No orphan reports found. Your database is clean!")
            return 0

        print(f"Found {len(orphans)} report(s) with broken relationships.")
        if not args.yes:
            answer = input("Delete these orphan reports? This cannot be undone. [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                print("Cleanup aborted.")
                return 0

        with store.unit_of_work():
            for report in orphans:
                print(f"Deleting report ID: {report.id} (points to application ID: {report.application_id})")
                store.delete(report)
        logger.info("deleted %d orphan service report(s)", len(orphans))
        print(f"Successfully deleted {len(orphans)} orphan report(s).")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m scholarflow.cli",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """\
            Scholarflow utilities
            ---------------------
            init-db          Create all SQLModel tables (safe if they already exist)
            progress         Show service-day progress for an application
            cleanup-orphans  Delete service reports whose application or program is gone
            serve            Run the HTTP API with uvicorn
            """
        ),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="create tables")
    p.set_defaults(func=_init_db)

    p = sub.add_parser("progress", help="show service-day progress")
    p.add_argument("application_id", type=int)
    p.set_defaults(func=_progress)

    p = sub.add_parser("cleanup-orphans", help="delete orphan service reports")
    p.add_argument("--yes", action="store_true", help="do not ask for confirmation")
    p.set_defaults(func=_cleanup_orphans)

    p = sub.add_parser("serve", help="run the HTTP API")
    p.add_argument("--host", default=API_HOST)
    p.add_argument("--port", type=int, default=API_PORT)
    p.add_argument("--reload", action="store_true")
    p.set_defaults(func=_serve)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
