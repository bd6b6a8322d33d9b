import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsboard.core.deps import SessionContext
from opsboard.core.errors import AuthenticationError, AuthorizationError, DemoReadOnlyError, NotFoundError
from opsboard.core.logging import mask_token
from opsboard.ingest.fingerprint import sha256_hex
from opsboard.models.source_connections import SourceConnection
from opsboard.models.tenants import Tenant

logger = logging.getLogger(__name__)

WEBHOOK = "webhook"
CSV = "csv"
ACTIVE = "active"

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class ResolvedConnection:
    tenant_id: uuid.UUID
    connection_id: uuid.UUID
    is_read_only: bool


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    m = _BEARER.match(authorization.strip())
    return m.group(1).strip() if m else None


def resolve_by_token(db: Session, token: str) -> ResolvedConnection:
    # unknown and inactive tokens get the same answer
    row = db.execute(
        select(SourceConnection, Tenant.is_demo)
        .join(Tenant, Tenant.id == SourceConnection.tenant_id)
        .where(
            SourceConnection.type == WEBHOOK,
            SourceConnection.token_hash == sha256_hex(token),
            SourceConnection.status == ACTIVE,
        )
    ).one_or_none()

    if row is None:
        logger.info("Bearer token rejected token=%s", mask_token(token))
        raise AuthenticationError("Invalid token")

    conn, is_demo = row
    return ResolvedConnection(tenant_id=conn.tenant_id, connection_id=conn.id, is_read_only=bool(is_demo))


def load_tenant_connection(
    db: Session,
    *,
    tenant_id: uuid.UUID,
    connection_id: Optional[str],
    connection_type: Optional[str] = None,
) -> SourceConnection:
    try:
        conn_uuid = uuid.UUID(str(connection_id or ""))
    except ValueError:
        raise NotFoundError("Connection not found")

    conn = db.get(SourceConnection, conn_uuid)
    if conn is None or conn.tenant_id != tenant_id:
        raise NotFoundError("Connection not found")
    if connection_type is not None and conn.type != connection_type:
        raise NotFoundError("Connection not found")
    return conn


def resolve_by_session(
    db: Session,
    session: Optional[SessionContext],
    connection_id: Optional[str],
) -> ResolvedConnection:
    if session is None:
        raise AuthenticationError("Not authenticated")
    if not session.is_admin:
        raise AuthorizationError("OWNER/ADMIN required")
    if session.is_demo:
        raise DemoReadOnlyError()

    conn = load_tenant_connection(
        db, tenant_id=session.tenant_id, connection_id=connection_id, connection_type=WEBHOOK
    )
    return ResolvedConnection(tenant_id=session.tenant_id, connection_id=conn.id, is_read_only=False)


def resolve_connection(
    db: Session,
    *,
    bearer_token: Optional[str],
    session: Optional[SessionContext],
    connection_id: Optional[str],
) -> ResolvedConnection:
    """
    Bearer credential first; otherwise an admin session of a writable tenant
    plus an explicit connection id. Pure lookup.
    """
    if bearer_token:
        return resolve_by_token(db, bearer_token)
    return resolve_by_session(db, session, connection_id)
