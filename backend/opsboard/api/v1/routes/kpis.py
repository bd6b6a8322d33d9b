from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import sessionmaker

from opsboard.api.v1.schemas.kpis import KpiResponse, WindowOut
from opsboard.core.config import settings
from opsboard.core.deps import SessionContext, get_session_factory, require_session
from opsboard.core.errors import ValidationError
from opsboard.core.time import today_in_tz
from opsboard.kpi.aggregator import compute_kpis
from opsboard.kpi.window import resolve_window

router = APIRouter(prefix="/v1", tags=["kpis"])


def _parse_date(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{name} must be YYYY-MM-DD")


@router.get("/kpis", response_model=KpiResponse)
def get_kpis(
    preset: Optional[str] = Query(None, description="MTD | QTD | YTD | LAST_7 | LAST_30 | CUSTOM"),
    start: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD"),
    scope: Optional[str] = Query(None, description="Optional preview workspace id"),
    session: SessionContext = Depends(require_session),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    today = today_in_tz(settings.timezone)
    window = resolve_window(
        today=today,
        preset=preset,
        start=_parse_date(start, "start"),
        end=_parse_date(end, "end"),
    )

    scope_id = None
    if scope:
        try:
            scope_id = uuid.UUID(scope)
        except ValueError:
            raise ValidationError("scope must be a UUID")

    kpis = compute_kpis(
        session_factory,
        session.tenant_id,
        window,
        scope_id,
        today=today,
        max_workers=settings.kpi_max_workers,
        recency_days=settings.kpi_override_recency_days,
        row_limit=settings.kpi_override_row_limit,
    )
    return KpiResponse(kpis=kpis, window=WindowOut(**window.as_dict()))
