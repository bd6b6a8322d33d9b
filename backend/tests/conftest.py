"""
Shared pytest fixtures.

Every test gets its own SQLite database file, so the thread-pooled KPI
queries and the API's per-request sessions all see the same data.
"""

import os

# must be set before opsboard.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("APP_TIMEZONE", "UTC")

import uuid  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from starlette.testclient import TestClient  # noqa: E402

from opsboard.core.db import init_db, make_engine  # noqa: E402
from opsboard.core.deps import get_db, get_session_factory  # noqa: E402
from opsboard.ingest.resolver import ResolvedConnection  # noqa: E402
from opsboard.ingest.tokens import new_webhook_token  # noqa: E402
from opsboard.models.field_mappings import FieldMapping  # noqa: E402
from opsboard.models.source_connections import SourceConnection  # noqa: E402
from opsboard.models.tenants import Tenant  # noqa: E402


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'opsboard.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Tenants / connections / mappings
# =============================================================================

@pytest.fixture
def tenant(db):
    t = Tenant(id=uuid.uuid4(), name="Acme Field Services", is_demo=False)
    db.add(t)
    db.commit()
    return t


@pytest.fixture
def demo_tenant(db):
    t = Tenant(id=uuid.uuid4(), name="Demo Org", is_demo=True)
    db.add(t)
    db.commit()
    return t


def make_connection(db, tenant, *, type="webhook", status="active"):
    token = None
    conn = SourceConnection(id=uuid.uuid4(), tenant_id=tenant.id, type=type, name=f"{type} feed", status=status, config={})
    if type == "webhook":
        token, conn.token_hash, conn.token_prefix = new_webhook_token()
    db.add(conn)
    db.commit()
    return conn, token


def add_mapping(db, tenant, conn, document, *, is_active=True):
    fm = FieldMapping(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        connection_id=conn.id,
        target="metric_values",
        version=document.get("version", 1),
        mapping=document,
        is_active=is_active,
    )
    db.add(fm)
    db.commit()
    return fm


@pytest.fixture
def webhook(db, tenant):
    """(connection, plaintext token) for an active webhook connection."""
    return make_connection(db, tenant)


@pytest.fixture
def resolved(tenant, webhook):
    conn, _ = webhook
    return ResolvedConnection(tenant_id=tenant.id, connection_id=conn.id, is_read_only=False)


@pytest.fixture
def revenue_mapping_doc():
    return {
        "version": 1,
        "target": "metric_values",
        "metric_key": "revenue_mtd",
        "occurred_on": {"mode": "field", "field": "date"},
        "value_num": {"field": "amount"},
        "source": {"mode": "fixed", "value": "stripe"},
    }


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def client(session_factory):
    from opsboard.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


def session_headers(tenant, role="ADMIN"):
    return {"X-Tenant-Id": str(tenant.id), "X-User-Role": role}
