import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import Callable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from opsboard.kpi.baseline import BASELINE_QUERIES, KPI_KEYS
from opsboard.kpi.merge import merge_overrides
from opsboard.kpi.window import KpiWindow
from opsboard.models.metric_values import MetricValue

logger = logging.getLogger(__name__)


def fetch_latest_overrides(
    db: Session,
    *,
    tenant_id: uuid.UUID,
    scope_id: Optional[uuid.UUID],
    today: date,
    recency_days: int,
    row_limit: int,
    keys: Sequence[str] = KPI_KEYS,
) -> dict[str, Optional[float]]:
    """
    Latest ingested value per metric key, by (occurred_on desc, created_at desc).
    Only observations from the last recency_days are considered.
    """
    scope_clause = MetricValue.scope_id == scope_id if scope_id is not None else MetricValue.scope_id.is_(None)
    rows = db.execute(
        select(MetricValue.metric_key, MetricValue.value_num)
        .where(
            MetricValue.tenant_id == tenant_id,
            scope_clause,
            MetricValue.metric_key.in_(list(keys)),
            MetricValue.occurred_on >= today - timedelta(days=recency_days),
        )
        .order_by(MetricValue.occurred_on.desc(), MetricValue.created_at.desc())
        .limit(row_limit)
    ).all()

    latest: dict[str, Optional[float]] = {}
    for metric_key, value_num in rows:
        if metric_key not in latest:
            latest[metric_key] = value_num
    return latest


def _in_session(session_factory: sessionmaker, fn: Callable, **kwargs):
    t0 = time.perf_counter()
    with session_factory() as db:
        result = fn(db, **kwargs)
    logger.debug("KPI query %s completed in %.3fs", fn.__name__, time.perf_counter() - t0)
    return result


def compute_kpis(
    session_factory: sessionmaker,
    tenant_id: uuid.UUID,
    window: KpiWindow,
    scope_id: Optional[uuid.UUID] = None,
    *,
    today: date,
    max_workers: int = 8,
    recency_days: int = 365,
    row_limit: int = 1000,
) -> dict[str, float]:
    """
    Baseline KPIs from operational tables, overridden per key by the latest
    ingested metric value. Baseline queries and the override lookup run
    concurrently, one session each.

    A failing override lookup degrades to baseline-only values; a failing
    baseline query fails the call.
    """
    query_args = {"tenant_id": tenant_id, "scope_id": scope_id, "window": window, "today": today}

    with ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="kpi") as pool:
        override_future = pool.submit(
            _in_session,
            session_factory,
            fetch_latest_overrides,
            tenant_id=tenant_id,
            scope_id=scope_id,
            today=today,
            recency_days=recency_days,
            row_limit=row_limit,
        )
        baseline_futures = [pool.submit(_in_session, session_factory, q, **query_args) for q in BASELINE_QUERIES]

        baseline: dict[str, float] = {}
        for fut in baseline_futures:
            baseline.update(fut.result())

        try:
            overrides = override_future.result()
        except Exception as e:
            logger.warning("KPI override lookup failed tenant=%s; using computed values only: %r", tenant_id, e)
            overrides = {}

    kpis = merge_overrides(baseline, overrides)
    logger.info(
        "KPIs computed tenant=%s scope=%s window=%s..%s override_keys=%s",
        tenant_id,
        scope_id,
        window.start,
        window.end,
        sorted(overrides),
    )
    return kpis
