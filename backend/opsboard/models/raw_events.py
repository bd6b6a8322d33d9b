import uuid
from sqlalchemy import Column, Date, DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from opsboard.core.db import Base, JSONType, utcnow

class RawEvent(Base):
    __tablename__ = "raw_events"
    __table_args__ = (
        UniqueConstraint("tenant_id", "connection_id", "dedupe_hash", name="uq_raw_events_dedupe"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    connection_id = Column(Uuid, ForeignKey("source_connections.id"), nullable=False, index=True)
    run_id = Column(Uuid, ForeignKey("source_runs.id"), nullable=True, index=True)

    event_type = Column(Text, nullable=False, index=True)
    payload = Column(JSONType, nullable=False, default=dict)
    occurred_on = Column(Date, nullable=True)

    dedupe_hash = Column(Text, nullable=False)
    received_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
