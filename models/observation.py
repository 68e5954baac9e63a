from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class State(str, Enum):
    OPERATIONAL = "operational"
    INCIDENT = "incident"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    MINOR = "minor"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ServiceObservation:
    """Canonical result of one poll of one service, produced by every provider.

    Fields:
        state:       operational, incident or unknown.
        severity:    Only meaningful when ``state`` is incident.
        title:       Human-readable summary, if upstream gave one.
        started_at:  Incident onset as reported upstream (ISO-8601 text).
                     May be missing or churn between polls.
        incident_id: Upstream-assigned identifier. May also churn.
    """

    state: State
    severity: Severity = Severity.MINOR
    title: str | None = None
    started_at: str | None = None
    incident_id: str | None = None

    @classmethod
    def operational(cls) -> ServiceObservation:
        return cls(state=State.OPERATIONAL)

    @classmethod
    def unknown(cls) -> ServiceObservation:
        return cls(state=State.UNKNOWN)

    def to_dict(self) -> dict:
        out: dict = {"state": self.state.value}
        if self.state is State.INCIDENT:
            out["severity"] = self.severity.value
        if self.title:
            out["title"] = self.title
        if self.started_at:
            out["startedAt"] = self.started_at
        if self.incident_id:
            out["incidentId"] = self.incident_id
        return out

    @classmethod
    def from_dict(cls, data: object) -> ServiceObservation:
        """Build an observation from its dict form; anything unusable is unknown."""
        if not isinstance(data, dict) or not isinstance(data.get("state"), str):
            return cls.unknown()
        try:
            state = State(data["state"].lower())
        except ValueError:
            return cls.unknown()
        return cls(
            state=state,
            severity=parse_severity(data.get("severity")),
            title=_opt_str(data.get("title")),
            started_at=_opt_str(data.get("startedAt")),
            incident_id=_opt_str(data.get("incidentId")),
        )


@dataclass(frozen=True)
class ActiveIncident:
    """One unresolved incident from an upstream summary that lists several."""

    incident_id: str | None
    title: str
    started_at: str | None
    severity: Severity = Severity.MINOR


def parse_severity(raw: object) -> Severity:
    if isinstance(raw, str) and raw.strip().lower() in ("critical", "major"):
        return Severity.CRITICAL
    return Severity.MINOR


def _opt_str(value: object) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None
