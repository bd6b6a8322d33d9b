import uuid
from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Index, Text, Uuid
from opsboard.core.db import Base, utcnow

class MetricValue(Base):
    __tablename__ = "metric_values"
    __table_args__ = (
        Index("ix_metric_values_latest", "tenant_id", "metric_key", "occurred_on", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    scope_id = Column(Uuid, nullable=True, index=True)  # preview workspace partition

    metric_key = Column(Text, nullable=False)
    value_num = Column(Float, nullable=True)
    value_text = Column(Text, nullable=True)
    occurred_on = Column(Date, nullable=False)
    source = Column(Text, nullable=True)

    raw_event_id = Column(Uuid, ForeignKey("raw_events.id"), nullable=True, index=True)
    # python-side default: "latest" ties on occurred_on are broken by this column
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
