"""
Request-synchronous ingestion: one webhook event (or one CSV file) per call.

    resolve -> open run -> fingerprint -> raw_events -> normalize -> metric_values -> close run

The raw event and its metric value commit together. Once a run is opened,
every exit path gives it a terminal status.
"""

from __future__ import annotations

import csv
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from opsboard.core.errors import DemoReadOnlyError, PersistenceError, ValidationError
from opsboard.ingest.fingerprint import compute_dedupe_hash
from opsboard.ingest.loader import insert_raw_event, write_metric_value
from opsboard.ingest.mapping import MappingConfig
from opsboard.ingest.normalize import load_active_mapping, normalize_metric_value, to_date
from opsboard.ingest.resolver import ResolvedConnection
from opsboard.ingest.runs import FAILED, SUCCESS, close_run, open_run

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = "metric"
CSV_EVENT_TYPE = "csv_row"

VALID = "valid"
INVALID = "invalid"
DUPLICATE = "duplicate"


@dataclass(frozen=True)
class IngestResult:
    raw_event_id: uuid.UUID
    normalized_count: int
    run_id: uuid.UUID
    duplicate: bool


@dataclass(frozen=True)
class CsvImportResult:
    run_id: uuid.UUID
    rows_in: int
    rows_valid: int
    rows_invalid: int
    rows_duplicate: int


@dataclass(frozen=True)
class _RowOutcome:
    raw_event_id: uuid.UUID
    status: str
    error: Optional[str] = None


def build_payload(body: Any) -> tuple[str, dict]:
    """Shapes a request body into (event_type, payload); never rejects a body."""
    body = body if isinstance(body, dict) else {}

    event_type = str(body.get("event_type") or DEFAULT_EVENT_TYPE).strip() or DEFAULT_EVENT_TYPE
    data = body.get("data")
    payload = {
        "event_type": event_type,
        "occurred_on": body.get("occurred_on"),
        "data": data if isinstance(data, dict) else {},
    }
    return event_type, payload


def _record_event(
    db: Session,
    *,
    tenant_id: uuid.UUID,
    connection_id: uuid.UUID,
    run_id: uuid.UUID,
    event_type: str,
    payload: dict,
    mapping: Optional[MappingConfig],
    today: date,
) -> _RowOutcome:
    dedupe_hash = compute_dedupe_hash(tenant_id, connection_id, event_type, payload)

    raw_event_id, inserted = insert_raw_event(
        db,
        tenant_id=tenant_id,
        connection_id=connection_id,
        run_id=run_id,
        event_type=event_type,
        payload=payload,
        occurred_on=to_date(payload.get("occurred_on")),
        dedupe_hash=dedupe_hash,
    )
    if not inserted:
        return _RowOutcome(raw_event_id, DUPLICATE)

    if mapping is None:
        logger.debug("No active mapping for connection=%s; raw event %s not normalized", connection_id, raw_event_id)
        return _RowOutcome(raw_event_id, INVALID)

    observation = normalize_metric_value(mapping, payload, today=today)
    if observation is None:
        logger.debug("Raw event %s produced no observation for metric_key=%s", raw_event_id, mapping.metric_key)
        return _RowOutcome(raw_event_id, INVALID)

    try:
        write_metric_value(db, tenant_id=tenant_id, observation=observation, raw_event_id=raw_event_id)
    except PersistenceError as e:
        return _RowOutcome(raw_event_id, INVALID, error=e.message)

    return _RowOutcome(raw_event_id, VALID)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(str(e.orig) if getattr(e, "orig", None) else str(e)) from e


def ingest_event(
    db: Session,
    resolved: ResolvedConnection,
    body: Any,
    *,
    today: date,
) -> IngestResult:
    if resolved.is_read_only:
        raise DemoReadOnlyError()

    event_type, payload = build_payload(body)

    run_id = open_run(db, tenant_id=resolved.tenant_id, connection_id=resolved.connection_id, rows_in=1)

    try:
        mapping = load_active_mapping(db, tenant_id=resolved.tenant_id, connection_id=resolved.connection_id)
        outcome = _record_event(
            db,
            tenant_id=resolved.tenant_id,
            connection_id=resolved.connection_id,
            run_id=run_id,
            event_type=event_type,
            payload=payload,
            mapping=mapping,
            today=today,
        )
        _commit(db)

    except PersistenceError as e:
        db.rollback()
        close_run(db, run_id, status=FAILED, rows_valid=0, rows_invalid=1, error=e.message)
        raise

    except Exception as e:
        db.rollback()
        close_run(db, run_id, status=FAILED, rows_valid=0, rows_invalid=1, error=repr(e))
        raise

    close_run(
        db,
        run_id,
        status=SUCCESS,
        rows_valid=1 if outcome.status == VALID else 0,
        rows_invalid=1 if outcome.status == INVALID else 0,
        rows_duplicate=1 if outcome.status == DUPLICATE else 0,
        error=outcome.error,
    )

    return IngestResult(
        raw_event_id=outcome.raw_event_id,
        normalized_count=1 if outcome.status == VALID else 0,
        run_id=run_id,
        duplicate=outcome.status == DUPLICATE,
    )


def parse_csv(text: str) -> list[list[str]]:
    rows = list(csv.reader(io.StringIO(text)))
    # blank lines come back as []; a trailing "," line as [""]
    return [r for r in rows if r and not (len(r) == 1 and r[0] == "")]


def ingest_csv(
    db: Session,
    *,
    tenant_id: uuid.UUID,
    connection_id: uuid.UUID,
    text: str,
    today: date,
) -> CsvImportResult:
    """
    Imports one CSV file as one run. Each data row becomes a `csv_row` raw
    event `{data: {header: value}, row_index}` and goes through the same
    dedupe / normalize / write path as a webhook event. Rows commit
    independently; a failed row is counted invalid and the import continues.
    """
    run_id = open_run(db, tenant_id=tenant_id, connection_id=connection_id, rows_in=0)

    try:
        parsed = parse_csv(text)
    except csv.Error as e:
        close_run(db, run_id, status=FAILED, rows_valid=0, rows_invalid=0, error=f"CSV parse error: {e}")
        raise ValidationError("Invalid CSV") from e

    if len(parsed) < 2:
        close_run(
            db,
            run_id,
            status=FAILED,
            rows_in=len(parsed),
            rows_valid=0,
            rows_invalid=len(parsed),
            error="CSV must include header row and at least one data row",
        )
        raise ValidationError("Invalid CSV (needs header + rows)")

    headers = [h.strip() for h in parsed[0]]
    counts = {VALID: 0, INVALID: 0, DUPLICATE: 0}

    try:
        mapping = load_active_mapping(db, tenant_id=tenant_id, connection_id=connection_id)

        for idx, values in enumerate(parsed[1:], start=1):
            row = {h: (values[i] if i < len(values) else "") for i, h in enumerate(headers)}
            payload = {"data": row, "row_index": idx}

            try:
                outcome = _record_event(
                    db,
                    tenant_id=tenant_id,
                    connection_id=connection_id,
                    run_id=run_id,
                    event_type=CSV_EVENT_TYPE,
                    payload=payload,
                    mapping=mapping,
                    today=today,
                )
                _commit(db)
            except PersistenceError as e:
                db.rollback()
                logger.warning("CSV row %d rejected run_id=%s: %s", idx, run_id, e.message)
                counts[INVALID] += 1
                continue

            counts[outcome.status] += 1

    except Exception as e:
        db.rollback()
        close_run(
            db,
            run_id,
            status=FAILED,
            rows_in=sum(counts.values()),
            rows_valid=counts[VALID],
            rows_invalid=counts[INVALID],
            rows_duplicate=counts[DUPLICATE],
            error=repr(e),
        )
        raise

    rows_in = sum(counts.values())
    close_run(
        db,
        run_id,
        status=SUCCESS,
        rows_in=rows_in,
        rows_valid=counts[VALID],
        rows_invalid=counts[INVALID],
        rows_duplicate=counts[DUPLICATE],
    )

    return CsvImportResult(
        run_id=run_id,
        rows_in=rows_in,
        rows_valid=counts[VALID],
        rows_invalid=counts[INVALID],
        rows_duplicate=counts[DUPLICATE],
    )
