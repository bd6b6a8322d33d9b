import uuid
from sqlalchemy import Boolean, Column, DateTime, Text, Uuid
from sqlalchemy.sql import func
from opsboard.core.db import Base

class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    is_demo = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
