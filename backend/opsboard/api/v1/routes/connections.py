import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from opsboard.api.v1.schemas.connections import ConnectionCreate, ConnectionOut, ConnectionWithToken
from opsboard.core.deps import SessionContext, get_db, require_admin_writer
from opsboard.core.errors import ValidationError
from opsboard.ingest.resolver import ACTIVE, CSV, WEBHOOK, load_tenant_connection
from opsboard.ingest.tokens import new_webhook_token
from opsboard.models.source_connections import SourceConnection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/connections", tags=["connections"])


@router.post("", response_model=ConnectionWithToken)
def create_connection(
    payload: ConnectionCreate,
    session: SessionContext = Depends(require_admin_writer),
    db: Session = Depends(get_db),
):
    conn_type = payload.type.strip()
    name = payload.name.strip()
    if conn_type not in (CSV, WEBHOOK):
        raise ValidationError("Invalid type")
    if not name:
        raise ValidationError("Name is required")

    conn = SourceConnection(
        id=uuid.uuid4(),
        tenant_id=session.tenant_id,
        type=conn_type,
        name=name,
        status=ACTIVE,
        config={},
    )

    token = None
    if conn_type == WEBHOOK:
        token, conn.token_hash, conn.token_prefix = new_webhook_token()

    db.add(conn)
    db.commit()
    db.refresh(conn)

    logger.info("Connection created id=%s tenant=%s type=%s", conn.id, session.tenant_id, conn_type)
    return ConnectionWithToken(connection=ConnectionOut.model_validate(conn), token=token)


@router.post("/{connection_id}/regenerate-token", response_model=ConnectionWithToken)
def regenerate_token(
    connection_id: str,
    session: SessionContext = Depends(require_admin_writer),
    db: Session = Depends(get_db),
):
    conn = load_tenant_connection(db, tenant_id=session.tenant_id, connection_id=connection_id)
    if conn.type != WEBHOOK:
        raise ValidationError("Not a webhook connection")

    # the previous token stops resolving as soon as this commits
    token, conn.token_hash, conn.token_prefix = new_webhook_token()
    db.commit()
    db.refresh(conn)

    logger.info("Webhook token regenerated connection=%s tenant=%s", conn.id, session.tenant_id)
    return ConnectionWithToken(connection=ConnectionOut.model_validate(conn), token=token)
