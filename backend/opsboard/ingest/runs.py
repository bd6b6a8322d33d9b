import logging
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsboard.core.db import utcnow
from opsboard.core.errors import RunStateError
from opsboard.models.source_runs import SourceRun

logger = logging.getLogger(__name__)

RUNNING = "running"
SUCCESS = "success"
FAILED = "failed"
TERMINAL_STATUSES = {SUCCESS, FAILED}


def open_run(db: Session, *, tenant_id: uuid.UUID, connection_id: uuid.UUID, rows_in: int) -> uuid.UUID:
    """
    Inserts and commits a `running` row before any processing, so a crash
    before close_run leaves a visible stuck run.
    """
    run_id = uuid.uuid4()
    run = SourceRun(
        id=run_id,
        tenant_id=tenant_id,
        connection_id=connection_id,
        status=RUNNING,
        rows_in=rows_in,
    )
    db.add(run)
    db.commit()
    logger.info("Run opened run_id=%s tenant=%s connection=%s rows_in=%d", run_id, tenant_id, connection_id, rows_in)
    return run_id


def close_run(
    db: Session,
    run_id: uuid.UUID,
    *,
    status: str,
    rows_valid: int,
    rows_invalid: int,
    rows_duplicate: int = 0,
    rows_in: Optional[int] = None,
    error: Optional[str] = None,
) -> SourceRun:
    if status not in TERMINAL_STATUSES:
        raise RunStateError(f"cannot close run {run_id} with non-terminal status {status!r}")

    run = db.get(SourceRun, run_id)
    if run is None:
        raise RunStateError(f"run {run_id} does not exist")
    if run.status != RUNNING:
        raise RunStateError(f"run {run_id} already closed with status {run.status!r}")

    run.status = status
    run.finished_at = utcnow()
    run.rows_valid = rows_valid
    run.rows_invalid = rows_invalid
    run.rows_duplicate = rows_duplicate
    if rows_in is not None:
        run.rows_in = rows_in
    run.error = error
    db.commit()

    log = logger.warning if status == FAILED else logger.info
    log(
        "Run closed run_id=%s status=%s valid=%d invalid=%d duplicate=%d error=%s",
        run_id,
        status,
        rows_valid,
        rows_invalid,
        rows_duplicate,
        error,
    )
    return run


def fail_stale_runs(db: Session, *, older_than_minutes: int, commit: bool = True) -> list[uuid.UUID]:
    """
    Marks `running` runs started more than older_than_minutes ago as failed.

    Only a request that died between open and close can leave such a row
    behind. Nothing is retried; the row is just given a terminal status.
    """
    cutoff = utcnow() - timedelta(minutes=older_than_minutes)
    stale = db.execute(
        select(SourceRun).where(SourceRun.status == RUNNING, SourceRun.started_at < cutoff)
    ).scalars().all()

    now = utcnow()
    for run in stale:
        run.status = FAILED
        run.finished_at = now
        run.error = f"stale: no terminal status after {older_than_minutes} minutes"

    if commit:
        db.commit()
    return [run.id for run in stale]
