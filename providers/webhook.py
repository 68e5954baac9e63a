from __future__ import annotations

import logging

from core.state import StateRepository
from models.observation import ServiceObservation, Severity, State, parse_severity
from models.service import ServiceDescriptor
from providers.base import StatusProvider

log = logging.getLogger(__name__)

_OK_STATUSES = ("up", "operational", "ok")
_CRITICAL_WORDS = ("down", "outage", "major", "critical")
_DEGRADED_COMPONENT_STATUSES = ("down", "warn", "degraded")


def normalize_statuspage_webhook(payload: object) -> ServiceObservation:
    """Statuspage incident webhook: ``{"incident": {"status", "impact", "name", ...}}``."""
    if not isinstance(payload, dict):
        return ServiceObservation.unknown()
    inc = payload.get("incident") or payload.get("data") or {}
    if not isinstance(inc, dict) or not inc.get("status"):
        return ServiceObservation.unknown()
    if str(inc["status"]).lower() == "resolved":
        return ServiceObservation.operational()
    incident_id = inc.get("id")
    return ServiceObservation(
        state=State.INCIDENT,
        severity=parse_severity(inc.get("impact") or inc.get("impact_override")),
        title=inc.get("name") or "Incident",
        started_at=inc.get("started_at") or inc.get("created_at"),
        incident_id=str(incident_id) if incident_id else None,
    )


def normalize_statusgator_webhook(payload: object) -> ServiceObservation:
    """StatusGator webhook. Payload shapes vary; only common fields are read."""
    if not isinstance(payload, dict):
        return ServiceObservation.unknown()
    status = str(payload.get("status") or payload.get("current_status") or "").lower()
    if not status:
        return ServiceObservation.unknown()
    if status in _OK_STATUSES:
        return ServiceObservation.operational()

    title = payload.get("title") or payload.get("summary") or "Incident"
    changes = payload.get("component_status_changes")
    if isinstance(changes, list):
        names = [
            str(c.get("name"))
            for c in changes
            if isinstance(c, dict) and c.get("current_status") in _DEGRADED_COMPONENT_STATUSES and c.get("name")
        ]
        if names:
            title = ", ".join(names)

    severity = Severity.CRITICAL if any(w in status for w in _CRITICAL_WORDS) else Severity.MINOR
    return ServiceObservation(state=State.INCIDENT, severity=severity, title=title)


class WebhookProvider(StatusProvider):
    """Serves the observation most recently pushed to the webhook endpoint."""

    def __init__(self, service: ServiceDescriptor, repo: StateRepository) -> None:
        super().__init__(service)
        if not service.key:
            raise ValueError(f"{service.name}: webhook source needs a key")
        self._repo = repo

    async def fetch_observation(self) -> ServiceObservation:
        observation = self._repo.load_webhook(self._service.key)  # type: ignore[arg-type]
        if observation is None:
            log.debug("[%s] nothing pushed yet", self.name)
            return ServiceObservation.unknown()
        return observation
