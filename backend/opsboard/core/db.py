from datetime import datetime, timezone

from sqlalchemy import JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, sessionmaker

from opsboard.core.config import settings

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")

Base = declarative_base()


def make_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    eng = create_engine(url, connect_args={"check_same_thread": False})

    # pysqlite manages BEGIN itself, which breaks SAVEPOINT; hand it to SQLAlchemy.
    @event.listens_for(eng, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return eng


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(bind=None) -> None:
    # models register themselves on Base.metadata when imported
    import opsboard.models.field_mappings  # noqa: F401
    import opsboard.models.metric_values  # noqa: F401
    import opsboard.models.operational  # noqa: F401
    import opsboard.models.raw_events  # noqa: F401
    import opsboard.models.source_connections  # noqa: F401
    import opsboard.models.source_runs  # noqa: F401
    import opsboard.models.tenants  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
