"""
Operational tables owned by the CRM / finance / ops screens.

The KPI layer only reads them; only the columns it aggregates over are mapped.
"""
import uuid
from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, Text, Uuid
from opsboard.core.db import Base

class Account(Base):
    __tablename__ = "accounts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    scope_id = Column(Uuid, nullable=True, index=True)

    name = Column(Text, nullable=False)
    renewal_date = Column(Date, nullable=True)
    health_override = Column(Integer, nullable=True)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    scope_id = Column(Uuid, nullable=True, index=True)
    account_id = Column(Uuid, ForeignKey("accounts.id"), nullable=True, index=True)

    total = Column(Float, nullable=False, default=0.0)
    status = Column(Text, nullable=False, index=True)  # DRAFT / SENT / PAID / OVERDUE / VOID
    issue_date = Column(Date, nullable=True, index=True)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    scope_id = Column(Uuid, nullable=True, index=True)
    invoice_id = Column(Uuid, ForeignKey("invoices.id"), nullable=False, index=True)

    amount = Column(Float, nullable=False, default=0.0)


class Opportunity(Base):
    __tablename__ = "opportunities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    scope_id = Column(Uuid, nullable=True, index=True)

    amount = Column(Float, nullable=False, default=0.0)
    stage = Column(Text, nullable=False, index=True)  # ... / WON / LOST
    close_date = Column(Date, nullable=True, index=True)


class WorkOrder(Base):
    __tablename__ = "work_orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    scope_id = Column(Uuid, nullable=True, index=True)

    status = Column(Text, nullable=False, index=True)  # ... / DONE
    due_date = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
