import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.sql import func
from opsboard.core.db import Base, JSONType

class SourceConnection(Base):
    __tablename__ = "source_connections"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)

    type = Column(Text, nullable=False, index=True)        # webhook / csv
    name = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="active")  # active / disabled
    config = Column(JSONType, nullable=False, default=dict)

    # sha256 hex of the bearer credential; the plaintext is never stored
    token_hash = Column(Text, nullable=True, unique=True)
    token_prefix = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
