import uuid
from dataclasses import dataclass
from typing import Iterator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session, sessionmaker

from opsboard.core.db import SessionLocal
from opsboard.core.errors import AuthenticationError, AuthorizationError, DemoReadOnlyError
from opsboard.models.tenants import Tenant

ADMIN_ROLES = {"OWNER", "ADMIN"}


@dataclass(frozen=True)
class SessionContext:
    """Authenticated tenant session, as established by the upstream auth gateway."""

    tenant_id: uuid.UUID
    role: Optional[str]
    is_demo: bool

    @property
    def is_admin(self) -> bool:
        return (self.role or "").upper() in ADMIN_ROLES


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_session_context(
    x_tenant_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[SessionContext]:
    # Session/cookie handling lives in the gateway; it forwards the resolved
    # tenant and role as trusted headers.
    if not x_tenant_id:
        return None
    try:
        tenant_id = uuid.UUID(x_tenant_id)
    except ValueError:
        return None

    tenant = db.get(Tenant, tenant_id)
    if tenant is None:
        return None

    return SessionContext(tenant_id=tenant.id, role=x_user_role, is_demo=bool(tenant.is_demo))


def require_session(session: Optional[SessionContext] = Depends(get_session_context)) -> SessionContext:
    if session is None:
        raise AuthenticationError("Not authenticated")
    return session


def require_admin_writer(session: SessionContext = Depends(require_session)) -> SessionContext:
    if not session.is_admin:
        raise AuthorizationError("OWNER/ADMIN required")
    if session.is_demo:
        raise DemoReadOnlyError()
    return session
