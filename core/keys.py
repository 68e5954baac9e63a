from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from models.service import ServiceDescriptor

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def dedupe_key(service: ServiceDescriptor) -> str:
    """Stable persistence key for a service.

    The public status URL is preferred over the display name since names get
    renamed and can collide between services.
    """
    base = service.status_url or service.name or ""
    return base.strip().rstrip("/").lower()


def parse_timestamp_ms(value: object) -> int | None:
    """Parse an upstream onset timestamp into epoch milliseconds.

    Accepts ISO 8601 text (``Z`` suffix allowed, naive values taken as UTC)
    and numeric epoch milliseconds. Returns None for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None

    raw = str(value).strip()
    if not raw:
        return None
    if raw.isdigit():
        return int(raw)
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def start_key(started_at: object, incident_id: object) -> str | None:
    """Identity of one continuous incident.

    A parseable onset timestamp wins over the upstream id because ids churn on
    some status pages while the onset stays put.
    """
    ms = parse_timestamp_ms(started_at)
    if ms is not None:
        return f"ts:{ms}"
    if incident_id is not None:
        ident = str(incident_id).strip()
        if ident:
            return f"id:{ident}"
    return None


def iso_from_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")
