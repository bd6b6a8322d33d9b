import logging
import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from opsboard.core.errors import PersistenceError
from opsboard.ingest.normalize import MetricObservation
from opsboard.models.metric_values import MetricValue
from opsboard.models.raw_events import RawEvent

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise PersistenceError(f"unsupported database dialect: {dialect}")


def insert_raw_event(
    db: Session,
    *,
    tenant_id: uuid.UUID,
    connection_id: uuid.UUID,
    run_id: Optional[uuid.UUID],
    event_type: str,
    payload: Any,
    occurred_on: Optional[date],
    dedupe_hash: str,
) -> tuple[uuid.UUID, bool]:
    """
    Insert one raw event idempotently. Requires the UNIQUE constraint on
      (tenant_id, connection_id, dedupe_hash)

    Returns (raw_event_id, inserted). On a dedupe conflict nothing is written
    and the id of the already-recorded event is returned with inserted=False.
    Does not commit.
    """
    insert = _insert_for(db)
    stmt = (
        insert(RawEvent)
        .values(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            connection_id=connection_id,
            run_id=run_id,
            event_type=event_type,
            payload=payload,
            occurred_on=occurred_on,
            dedupe_hash=dedupe_hash,
        )
        .on_conflict_do_nothing(index_elements=["tenant_id", "connection_id", "dedupe_hash"])
        .returning(RawEvent.id)
    )

    try:
        row = db.execute(stmt).fetchone()
        if row is not None:
            return row[0], True

        existing = db.execute(
            select(RawEvent.id).where(
                RawEvent.tenant_id == tenant_id,
                RawEvent.connection_id == connection_id,
                RawEvent.dedupe_hash == dedupe_hash,
            )
        ).scalar_one()
    except SQLAlchemyError as e:
        logger.error("Raw event insert failed tenant=%s connection=%s: %r", tenant_id, connection_id, e)
        raise PersistenceError(str(e.orig) if getattr(e, "orig", None) else str(e)) from e

    logger.info("Duplicate delivery tenant=%s connection=%s raw_event_id=%s", tenant_id, connection_id, existing)
    return existing, False


def write_metric_value(
    db: Session,
    *,
    tenant_id: uuid.UUID,
    observation: MetricObservation,
    raw_event_id: Optional[uuid.UUID] = None,
    scope_id: Optional[uuid.UUID] = None,
) -> uuid.UUID:
    """
    Append one observation to metric_values inside a savepoint, so a failed
    write leaves the enclosing transaction (and its raw event) usable.
    Existing rows are never updated. Does not commit.
    """
    mv = MetricValue(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        scope_id=scope_id,
        metric_key=observation.metric_key,
        value_num=observation.value_num,
        value_text=observation.value_text,
        occurred_on=observation.occurred_on,
        source=observation.source,
        raw_event_id=raw_event_id,
    )
    try:
        with db.begin_nested():
            db.add(mv)
    except SQLAlchemyError as e:
        logger.error("Metric value write failed tenant=%s key=%s: %r", tenant_id, observation.metric_key, e)
        raise PersistenceError(str(e.orig) if getattr(e, "orig", None) else str(e)) from e
    return mv.id
