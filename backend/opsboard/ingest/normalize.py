from __future__ import annotations

import logging
import math
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsboard.core.errors import MappingConfigError
from opsboard.ingest.mapping import (
    METRIC_VALUES_TARGET,
    MappingConfig,
    OccurredOnField,
    OccurredOnToday,
    SourceField,
    SourceFixed,
    parse_mapping,
)
from opsboard.models.field_mappings import FieldMapping

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


@dataclass(frozen=True)
class MetricObservation:
    metric_key: str
    occurred_on: date
    value_num: Optional[float]
    value_text: Optional[str]
    source: Optional[str]


def pick_field(data: Any, path: str) -> Any:
    """
    Returns data[path], or walks a dotted path ("totals.net") through nested
    objects. Anything that isn't there comes back as None.
    """
    if not isinstance(data, dict):
        return None
    if path in data:
        return data[path]

    cur: Any = data
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return None
        cur = cur[part]
    return cur


def to_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None
    if s[-1:] in ("Z", "z"):
        s = s[:-1] + "+00:00"
    try:
        if _ISO_DATE.match(s):
            return date.fromisoformat(s)
        return to_date(datetime.fromisoformat(s))
    except ValueError:
        return None


def to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            n = float(value)
        except OverflowError:
            return None
        return n if math.isfinite(n) else None
    if isinstance(value, str):
        s = value.strip().replace(",", "")
        if not _NUMBER.match(s):
            return None
        n = float(s)
        return n if math.isfinite(n) else None
    return None


def to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value)
    return s or None


def _occurred_on(mapping: MappingConfig, payload: dict, data: dict, today: date) -> Optional[date]:
    rule = mapping.occurred_on
    if isinstance(rule, OccurredOnField):
        return to_date(pick_field(data, rule.field))
    if isinstance(rule, OccurredOnToday):
        return today
    # event mode: the event's own hint, else the processing date
    return to_date(payload.get("occurred_on")) or today


def _source(mapping: MappingConfig, data: dict) -> Optional[str]:
    rule = mapping.source
    if isinstance(rule, SourceFixed):
        return rule.value or None
    if isinstance(rule, SourceField):
        return to_text(pick_field(data, rule.field))
    return None


def normalize_metric_value(
    mapping: MappingConfig,
    payload: Any,
    *,
    today: date,
) -> Optional[MetricObservation]:
    """
    Applies a mapping to one raw event payload ({event_type, occurred_on, data}).

    Returns None when the payload can't produce an observation: no `data`
    object, no usable occurrence date, or neither a numeric nor a text value.
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None

    occurred_on = _occurred_on(mapping, payload, data, today)
    if occurred_on is None:
        return None

    value_num = to_number(pick_field(data, mapping.value_num.field)) if mapping.value_num else None
    value_text = to_text(pick_field(data, mapping.value_text.field)) if mapping.value_text else None

    if value_num is None and value_text is None:
        return None

    return MetricObservation(
        metric_key=mapping.metric_key,
        occurred_on=occurred_on,
        value_num=value_num,
        value_text=value_text,
        source=_source(mapping, data),
    )


def load_active_mapping(
    db: Session,
    *,
    tenant_id: uuid.UUID,
    connection_id: uuid.UUID,
) -> Optional[MappingConfig]:
    row = db.execute(
        select(FieldMapping).where(
            FieldMapping.tenant_id == tenant_id,
            FieldMapping.connection_id == connection_id,
            FieldMapping.target == METRIC_VALUES_TARGET,
            FieldMapping.is_active.is_(True),
        )
    ).scalar_one_or_none()

    if row is None:
        return None

    try:
        return parse_mapping(row.mapping)
    except MappingConfigError as e:
        logger.warning("Ignoring invalid field mapping id=%s connection=%s: %s", row.id, connection_id, e)
        return None
