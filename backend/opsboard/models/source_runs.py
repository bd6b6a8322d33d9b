import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text, Uuid
from opsboard.core.db import Base, utcnow

class SourceRun(Base):
    __tablename__ = "source_runs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    connection_id = Column(Uuid, ForeignKey("source_connections.id"), nullable=False, index=True)

    status = Column(Text, nullable=False, default="running", index=True)  # running / success / failed

    rows_in = Column(Integer, nullable=False, default=0)
    rows_valid = Column(Integer, nullable=False, default=0)
    rows_invalid = Column(Integer, nullable=False, default=0)
    rows_duplicate = Column(Integer, nullable=False, default=0)

    error = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
