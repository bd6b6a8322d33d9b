import hashlib
import json
from typing import Any, Optional


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def canonical_json(value: Any) -> str:
    """
    Key-order independent serialization; non-JSON scalars (dates, UUIDs) fall
    back to str(). ASCII output, so lone surrogates survive the utf-8 encode.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)


def compute_dedupe_hash(
    tenant_id: Any,
    connection_id: Optional[Any],
    event_type: str,
    payload: Any,
) -> str:
    raw = canonical_json(
        {
            "tenant_id": str(tenant_id),
            "connection_id": str(connection_id) if connection_id is not None else None,
            "event_type": event_type,
            "payload": payload,
        }
    )
    return sha256_hex(raw)
