"""
Baseline KPIs derived from the operational tables.

Each query is read-only, scoped by tenant and (optionally) a sub-scope such
as a preview workspace, and independent of the others, so the aggregator can
run them concurrently, one session each. Without a scope only unscoped rows
are counted, which keeps preview data out of the live dashboard.

  revenue_mtd       SUM(invoices.total), status SENT/PAID/OVERDUE, issued in window
  pipeline_30/60/90 SUM(opportunities.amount), stage not WON/LOST, closing within N days
  ar_outstanding    SUM(max(invoice.total - payments, 0)), invoices not VOID
  on_time_delivery  DONE work orders completed by due date / DONE work orders
  churn_risk        accounts renewing within 60 days with health < 50 or an overdue invoice
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from opsboard.kpi.window import KpiWindow
from opsboard.models.operational import Account, Invoice, Opportunity, Payment, WorkOrder

KPI_KEYS = (
    "revenue_mtd",
    "pipeline_30",
    "pipeline_60",
    "pipeline_90",
    "ar_outstanding",
    "on_time_delivery",
    "churn_risk",
)

REVENUE_STATUSES = ("SENT", "PAID", "OVERDUE")
CLOSED_STAGES = ("WON", "LOST")
PIPELINE_HORIZONS = (30, 60, 90)
RENEWAL_HORIZON_DAYS = 60
DEFAULT_HEALTH = 50
HEALTH_AT_RISK_BELOW = 50

BaselineQuery = Callable[..., dict]


def _scoped(model, tenant_id: uuid.UUID, scope_id: Optional[uuid.UUID]) -> list:
    clauses = [model.tenant_id == tenant_id]
    clauses.append(model.scope_id == scope_id if scope_id is not None else model.scope_id.is_(None))
    return clauses


def revenue_in_window(
    db: Session, *, tenant_id: uuid.UUID, scope_id: Optional[uuid.UUID], window: KpiWindow, today: date
) -> dict:
    total = db.execute(
        select(func.coalesce(func.sum(Invoice.total), 0.0)).where(
            *_scoped(Invoice, tenant_id, scope_id),
            Invoice.status.in_(REVENUE_STATUSES),
            Invoice.issue_date >= window.start,
            Invoice.issue_date <= window.end,
        )
    ).scalar_one()
    return {"revenue_mtd": float(total or 0.0)}


def pipeline_by_horizon(
    db: Session, *, tenant_id: uuid.UUID, scope_id: Optional[uuid.UUID], window: KpiWindow, today: date
) -> dict:
    sums = [
        func.coalesce(
            func.sum(
                case((Opportunity.close_date <= today + timedelta(days=days), Opportunity.amount), else_=0.0)
            ),
            0.0,
        )
        for days in PIPELINE_HORIZONS
    ]
    row = db.execute(
        select(*sums).where(
            *_scoped(Opportunity, tenant_id, scope_id),
            Opportunity.stage.not_in(CLOSED_STAGES),
            Opportunity.close_date.is_not(None),
        )
    ).one()
    return {f"pipeline_{days}": float(value or 0.0) for days, value in zip(PIPELINE_HORIZONS, row)}


def ar_outstanding(
    db: Session, *, tenant_id: uuid.UUID, scope_id: Optional[uuid.UUID], window: KpiWindow, today: date
) -> dict:
    paid = (
        select(Payment.invoice_id, func.sum(Payment.amount).label("paid"))
        .where(*_scoped(Payment, tenant_id, scope_id))
        .group_by(Payment.invoice_id)
        .subquery()
    )
    rows = db.execute(
        select(Invoice.total, func.coalesce(paid.c.paid, 0.0))
        .outerjoin(paid, paid.c.invoice_id == Invoice.id)
        .where(*_scoped(Invoice, tenant_id, scope_id), Invoice.status != "VOID")
    ).all()

    outstanding = 0.0
    for total, paid_amount in rows:
        balance = float(total or 0.0) - float(paid_amount or 0.0)
        if balance > 0:
            outstanding += balance
    return {"ar_outstanding": outstanding}


def on_time_delivery(
    db: Session, *, tenant_id: uuid.UUID, scope_id: Optional[uuid.UUID], window: KpiWindow, today: date
) -> dict:
    rows = db.execute(
        select(WorkOrder.completed_at, WorkOrder.due_date).where(
            *_scoped(WorkOrder, tenant_id, scope_id),
            WorkOrder.status == "DONE",
        )
    ).all()

    on_time = 0
    for completed_at, due_date in rows:
        if completed_at is None or due_date is None:
            continue
        completed_on = completed_at.date() if isinstance(completed_at, datetime) else completed_at
        if completed_on <= due_date:
            on_time += 1

    return {"on_time_delivery": on_time / len(rows) if rows else 0.0}


def at_risk_accounts(
    db: Session, *, tenant_id: uuid.UUID, scope_id: Optional[uuid.UUID], window: KpiWindow, today: date
) -> dict:
    overdue_account_ids = set(
        db.execute(
            select(Invoice.account_id).where(
                *_scoped(Invoice, tenant_id, scope_id),
                Invoice.status == "OVERDUE",
                Invoice.account_id.is_not(None),
            )
        ).scalars()
    )

    renewal_threshold = today + timedelta(days=RENEWAL_HORIZON_DAYS)
    accounts = db.execute(
        select(Account.id, Account.health_override).where(
            *_scoped(Account, tenant_id, scope_id),
            Account.renewal_date.is_not(None),
            Account.renewal_date <= renewal_threshold,
        )
    ).all()

    churn_risk = 0
    for account_id, health_override in accounts:
        health = health_override if health_override is not None else DEFAULT_HEALTH
        if health < HEALTH_AT_RISK_BELOW or account_id in overdue_account_ids:
            churn_risk += 1

    return {"churn_risk": churn_risk}


BASELINE_QUERIES: tuple[BaselineQuery, ...] = (
    revenue_in_window,
    pipeline_by_horizon,
    ar_outstanding,
    on_time_delivery,
    at_risk_accounts,
)
