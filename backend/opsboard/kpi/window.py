from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

PRESETS = ("MTD", "QTD", "YTD", "LAST_7", "LAST_30", "CUSTOM")


@dataclass(frozen=True)
class KpiWindow:
    start: date
    end: date
    preset: str = "CUSTOM"

    def as_dict(self) -> dict:
        return {"preset": self.preset, "start": self.start.isoformat(), "end": self.end.isoformat()}


def window_for_preset(preset: str, today: date) -> KpiWindow:
    """
    Inclusive [start, end] date range ending today.
    Unknown presets (and CUSTOM without dates) fall back to month-to-date.
    """
    preset = (preset or "MTD").upper()

    if preset == "QTD":
        start = date(today.year, ((today.month - 1) // 3) * 3 + 1, 1)
    elif preset == "YTD":
        start = date(today.year, 1, 1)
    elif preset == "LAST_7":
        start = today - timedelta(days=7)
    elif preset == "LAST_30":
        start = today - timedelta(days=30)
    else:
        preset = "MTD"
        start = date(today.year, today.month, 1)

    return KpiWindow(start=start, end=today, preset=preset)


def resolve_window(
    *,
    today: date,
    preset: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> KpiWindow:
    if start is not None or end is not None:
        s = start or date(today.year, today.month, 1)
        e = end or today
        if s > e:
            s, e = e, s
        return KpiWindow(start=s, end=e, preset="CUSTOM")
    return window_for_preset(preset or "MTD", today)
