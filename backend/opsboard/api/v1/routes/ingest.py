from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from opsboard.api.v1.schemas.ingest import CsvImportResponse, IngestResponse
from opsboard.core.config import settings
from opsboard.core.deps import SessionContext, get_db, get_session_context, require_admin_writer
from opsboard.core.errors import ValidationError
from opsboard.core.time import today_in_tz
from opsboard.ingest.pipeline import ingest_csv, ingest_event
from opsboard.ingest.resolver import CSV, extract_bearer, load_tenant_connection, resolve_connection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/ingest", tags=["ingest"])


@router.post("/webhook", response_model=IngestResponse)
async def ingest_webhook(
    request: Request,
    connection: Optional[str] = Query(None, description="Connection id (session auth only)"),
    authorization: Optional[str] = Header(None),
    session: Optional[SessionContext] = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    resolved = await run_in_threadpool(
        resolve_connection,
        db,
        bearer_token=extract_bearer(authorization),
        session=session,
        connection_id=connection,
    )

    # unreadable bodies are recorded as an empty event, not rejected
    try:
        body: Any = await request.json()
    except ValueError:
        body = None

    result = await run_in_threadpool(ingest_event, db, resolved, body, today=today_in_tz(settings.timezone))

    return IngestResponse(
        rawEventId=result.raw_event_id,
        normalizedCount=result.normalized_count,
        runId=result.run_id,
        duplicate=result.duplicate,
    )


@router.post("/csv", response_model=CsvImportResponse)
async def ingest_csv_file(
    request: Request,
    connection: Optional[str] = Query(None, description="CSV connection id"),
    session: SessionContext = Depends(require_admin_writer),
    db: Session = Depends(get_db),
):
    if not connection:
        raise ValidationError("connection required")

    raw = await request.body()
    if not raw:
        raise ValidationError("Missing file")
    if len(raw) > settings.csv_max_bytes:
        raise ValidationError(f"File too large (max {settings.csv_max_bytes // (1024 * 1024)}MB)")

    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("CSV must be UTF-8 encoded")

    def _import() -> CsvImportResponse:
        conn = load_tenant_connection(db, tenant_id=session.tenant_id, connection_id=connection)
        if conn.type != CSV:
            raise ValidationError("Not a CSV connection")

        result = ingest_csv(
            db,
            tenant_id=session.tenant_id,
            connection_id=conn.id,
            text=text,
            today=today_in_tz(settings.timezone),
        )
        return CsvImportResponse(
            runId=result.run_id,
            rows_in=result.rows_in,
            rows_valid=result.rows_valid,
            rows_invalid=result.rows_invalid,
            rows_duplicate=result.rows_duplicate,
        )

    return await run_in_threadpool(_import)
