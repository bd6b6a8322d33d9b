import math
from typing import Any, Mapping

# KPI keys whose value is a count, not an amount or ratio
INTEGER_KPIS = {"churn_risk"}


def as_finite_number(value: Any):
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return n if math.isfinite(n) else None


def merge_overrides(baseline: Mapping[str, float], latest: Mapping[str, Any]) -> dict[str, float]:
    """
    Ingested values win: every finite numeric entry of `latest` replaces the
    computed baseline for its key. Keys without an override keep the baseline.
    Pure; neither input is mutated, so re-applying the same overrides is a no-op.
    """
    merged = dict(baseline)
    for key, value in latest.items():
        n = as_finite_number(value)
        if n is None:
            continue
        merged[key] = round(n) if key in INTEGER_KPIS else n
    return merged
