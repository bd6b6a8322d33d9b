import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from opsboard.core.db import Base, JSONType, utcnow

class FieldMapping(Base):
    __tablename__ = "field_mappings"
    __table_args__ = (
        UniqueConstraint("tenant_id", "connection_id", "target", name="uq_field_mappings_target"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    connection_id = Column(Uuid, ForeignKey("source_connections.id"), nullable=False, index=True)

    target = Column(Text, nullable=False, default="metric_values")
    version = Column(Integer, nullable=False, default=1)
    mapping = Column(JSONType, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
