from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from opsboard.api.v1.schemas.runs import RunList, SourceRunOut
from opsboard.core.deps import SessionContext, get_db, require_session
from opsboard.models.source_runs import SourceRun

router = APIRouter(prefix="/v1/runs", tags=["runs"])


@router.get("", response_model=RunList)
def list_runs(
    limit: int = Query(20, ge=1, le=200),
    session: SessionContext = Depends(require_session),
    db: Session = Depends(get_db),
):
    runs = db.execute(
        select(SourceRun)
        .where(SourceRun.tenant_id == session.tenant_id)
        .order_by(SourceRun.started_at.desc())
        .limit(limit)
    ).scalars().all()
    return RunList(runs=[SourceRunOut.model_validate(r) for r in runs])
