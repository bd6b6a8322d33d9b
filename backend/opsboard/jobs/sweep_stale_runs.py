"""
Marks source_runs stuck in `running` as failed.

A run is only left `running` when the process handling its request died
between opening and closing it. This job gives such rows a terminal status so
they stop looking in-flight; it does not retry or requeue anything.

Usage:
  python -m opsboard.jobs.sweep_stale_runs --older-than-minutes 30
"""

import argparse
import logging

from sqlalchemy.orm import Session

from opsboard.core.config import settings
from opsboard.core.db import SessionLocal
from opsboard.core.logging import configure_logging_if_needed
from opsboard.ingest.runs import fail_stale_runs

logger = logging.getLogger(__name__)


def main():
    p = argparse.ArgumentParser(description="Fail source_runs stuck in 'running'")
    p.add_argument("--older-than-minutes", type=int, default=settings.stale_run_minutes)
    p.add_argument("--dry-run", action="store_true", help="Report stale runs without updating them")
    args = p.parse_args()

    configure_logging_if_needed(settings.log_level)

    db: Session = SessionLocal()
    try:
        run_ids = fail_stale_runs(db, older_than_minutes=args.older_than_minutes, commit=not args.dry_run)
        if args.dry_run:
            db.rollback()

        logger.info(
            "Stale run sweep %s: %d run(s) older than %d minutes",
            "dry-run" if args.dry_run else "done",
            len(run_ids),
            args.older_than_minutes,
        )
        print({"stale_runs": [str(r) for r in run_ids], "dry_run": args.dry_run})
    finally:
        db.close()


if __name__ == "__main__":
    main()
