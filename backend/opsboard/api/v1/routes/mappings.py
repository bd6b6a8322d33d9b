import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from opsboard.api.v1.schemas.mappings import (
    FieldMappingOut,
    MappingFields,
    MappingSave,
    MappingSaved,
    MappingTest,
    MappingTestResult,
    NormalizedPreview,
    PreviewRow,
)
from opsboard.core.config import settings
from opsboard.core.deps import SessionContext, get_db, require_admin_writer
from opsboard.core.errors import MappingConfigError, NotFoundError, ValidationError
from opsboard.core.time import today_in_tz
from opsboard.ingest.mapping import METRIC_VALUES_TARGET, parse_mapping
from opsboard.ingest.normalize import load_active_mapping, normalize_metric_value
from opsboard.ingest.resolver import load_tenant_connection
from opsboard.models.field_mappings import FieldMapping
from opsboard.models.raw_events import RawEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/mappings", tags=["mappings"])

PREVIEW_LIMIT = 20


@router.post("", response_model=MappingSaved)
def save_mapping(
    payload: MappingSave,
    session: SessionContext = Depends(require_admin_writer),
    db: Session = Depends(get_db),
):
    connection_id = payload.source_connection_id.strip()
    if not connection_id:
        raise ValidationError("source_connection_id required")

    try:
        mapping = parse_mapping(payload.mapping)
    except MappingConfigError as e:
        raise ValidationError(f"Invalid mapping: {e}")

    conn = load_tenant_connection(db, tenant_id=session.tenant_id, connection_id=connection_id)

    row = db.execute(
        select(FieldMapping).where(
            FieldMapping.tenant_id == session.tenant_id,
            FieldMapping.connection_id == conn.id,
            FieldMapping.target == METRIC_VALUES_TARGET,
        )
    ).scalar_one_or_none()

    if row is None:
        row = FieldMapping(
            id=uuid.uuid4(),
            tenant_id=session.tenant_id,
            connection_id=conn.id,
            target=METRIC_VALUES_TARGET,
        )
        db.add(row)

    row.version = mapping.version
    row.mapping = mapping.model_dump(mode="json", exclude_none=True)
    row.is_active = True
    db.commit()
    db.refresh(row)

    logger.info("Field mapping saved connection=%s metric_key=%s version=%d", conn.id, mapping.metric_key, row.version)
    return MappingSaved(field_mapping=FieldMappingOut.model_validate(row))


@router.post("/test", response_model=MappingTestResult)
def test_mapping(
    payload: MappingTest,
    session: SessionContext = Depends(require_admin_writer),
    db: Session = Depends(get_db),
):
    """Dry-runs the active mapping over the most recent raw events of a connection."""
    connection_id = payload.source_connection_id.strip()
    if not connection_id:
        raise ValidationError("source_connection_id required")

    conn = load_tenant_connection(db, tenant_id=session.tenant_id, connection_id=connection_id)
    mapping = load_active_mapping(db, tenant_id=session.tenant_id, connection_id=conn.id)
    if mapping is None:
        raise NotFoundError("No mapping configured")

    raws = db.execute(
        select(RawEvent.payload, RawEvent.received_at)
        .where(RawEvent.tenant_id == session.tenant_id, RawEvent.connection_id == conn.id)
        .order_by(RawEvent.received_at.desc())
        .limit(PREVIEW_LIMIT)
    ).all()

    today = today_in_tz(settings.timezone)
    preview: list[PreviewRow] = []
    null_count = 0
    for raw_payload, received_at in raws:
        obs = normalize_metric_value(mapping, raw_payload, today=today)
        if obs is None:
            null_count += 1
            continue
        preview.append(
            PreviewRow(
                received_at=received_at,
                normalized=NormalizedPreview(
                    metric_key=obs.metric_key,
                    occurred_on=obs.occurred_on,
                    value_num=obs.value_num,
                    value_text=obs.value_text,
                    source=obs.source,
                ),
            )
        )

    return MappingTestResult(preview=preview, nullCount=null_count)


@router.get("/fields", response_model=MappingFields)
def list_fields(
    connection: str = Query("", description="Connection id"),
    session: SessionContext = Depends(require_admin_writer),
    db: Session = Depends(get_db),
):
    """Keys of `data` in the connection's newest raw event, for building a mapping."""
    connection_id = connection.strip()
    if not connection_id:
        raise ValidationError("Missing connection")

    conn = load_tenant_connection(db, tenant_id=session.tenant_id, connection_id=connection_id)
    payload = db.execute(
        select(RawEvent.payload)
        .where(RawEvent.tenant_id == session.tenant_id, RawEvent.connection_id == conn.id)
        .order_by(RawEvent.received_at.desc())
        .limit(1)
    ).scalar_one_or_none()

    data = payload.get("data") if isinstance(payload, dict) else None
    return MappingFields(fields=sorted(data) if isinstance(data, dict) else [])
