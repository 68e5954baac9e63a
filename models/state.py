from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace

from models.observation import State

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistedIncidentState:
    """Durable incident bookkeeping for one service dedupe key.

    Serialised as JSON with camelCase keys so records written by earlier
    deployments stay readable. Decoding is tolerant field by field; a record
    that is not a JSON object at all decodes to the default state.
    """

    state: State = State.UNKNOWN
    start_key: str | None = None
    started_at: str | None = None
    incident_id: str | None = None
    last_notified_start_key: str | None = None
    last_notified_start_at: str | None = None
    last_notified_resolve_key: str | None = None
    last_notified_resolve_at: str | None = None
    last_non_incident_ts: int = 0
    # multi-incident services only
    notified_start_keys: tuple[str, ...] = ()
    notified_resolve_keys: tuple[str, ...] = ()
    start_key_to_started_at: dict[str, str] = field(default_factory=dict)
    start_key_to_title: dict[str, str] = field(default_factory=dict)

    def evolve(self, **changes) -> PersistedIncidentState:
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "startKey": self.start_key,
            "startedAt": self.started_at,
            "incidentId": self.incident_id,
            "lastNotifiedStartKey": self.last_notified_start_key,
            "lastNotifiedStartAt": self.last_notified_start_at,
            "lastNotifiedResolveKey": self.last_notified_resolve_key,
            "lastNotifiedResolveAt": self.last_notified_resolve_at,
            "lastNonIncidentTs": self.last_non_incident_ts,
            "notifiedStartKeys": list(self.notified_start_keys),
            "notifiedResolveKeys": list(self.notified_resolve_keys),
            "startKeyToStartedAt": dict(self.start_key_to_started_at),
            "startKeyToTitle": dict(self.start_key_to_title),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str | None) -> PersistedIncidentState:
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning("Discarding malformed persisted state record")
            return cls()
        if not isinstance(data, dict):
            log.warning("Discarding persisted state record of type %s", type(data).__name__)
            return cls()

        try:
            state = State(str(data.get("state") or "unknown"))
        except ValueError:
            state = State.UNKNOWN

        return cls(
            state=state,
            start_key=_str_or_none(data.get("startKey")),
            started_at=_str_or_none(data.get("startedAt")),
            incident_id=_str_or_none(data.get("incidentId")),
            last_notified_start_key=_str_or_none(data.get("lastNotifiedStartKey")),
            last_notified_start_at=_str_or_none(data.get("lastNotifiedStartAt")),
            last_notified_resolve_key=_str_or_none(data.get("lastNotifiedResolveKey")),
            last_notified_resolve_at=_str_or_none(data.get("lastNotifiedResolveAt")),
            last_non_incident_ts=_int_or_zero(data.get("lastNonIncidentTs")),
            notified_start_keys=_str_tuple(data.get("notifiedStartKeys")),
            notified_resolve_keys=_str_tuple(data.get("notifiedResolveKeys")),
            start_key_to_started_at=_str_map(data.get("startKeyToStartedAt")),
            start_key_to_title=_str_map(data.get("startKeyToTitle")),
        )


@dataclass(frozen=True)
class SuppressionRecord:
    """Last send attempt for one (service, direction, incident identity) triple."""

    last_sent_at_ms: int = 0
    last_signature: str = ""
    claim_id: str = ""

    def to_json(self) -> str:
        return json.dumps({
            "lastSentAtMs": self.last_sent_at_ms,
            "lastSignature": self.last_signature,
            "claimId": self.claim_id,
        })

    @classmethod
    def from_json(cls, raw: str | None) -> SuppressionRecord:
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except ValueError:
            return cls()
        if not isinstance(data, dict):
            return cls()
        return cls(
            last_sent_at_ms=_int_or_zero(data.get("lastSentAtMs")),
            last_signature=str(data.get("lastSignature") or ""),
            claim_id=str(data.get("claimId") or ""),
        )


def _str_or_none(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _int_or_zero(value: object) -> int:
    try:
        return int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0


def _str_tuple(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(v) for v in value if v is not None)


def _str_map(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}
