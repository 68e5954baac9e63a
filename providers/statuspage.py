from __future__ import annotations

import httpx

from models.observation import ActiveIncident, ServiceObservation, Severity, State, parse_severity
from models.service import ServiceDescriptor
from providers.base import MultiIncidentProvider, ProviderError, StatusProvider


def _is_summary(summary: object) -> bool:
    return isinstance(summary, dict) and (
        isinstance(summary.get("incidents"), list)
        or isinstance(summary.get("scheduled_maintenances"), list)
    )


def _impact(incident: dict) -> Severity:
    return parse_severity(incident.get("impact") or incident.get("impact_override") or "minor")


def _unresolved(summary: dict) -> list[dict]:
    incidents = summary.get("incidents")
    if not isinstance(incidents, list):
        return []
    return [
        inc for inc in incidents
        if isinstance(inc, dict) and str(inc.get("status") or "").lower() != "resolved"
    ]


def parse_statuspage_summary(summary: object) -> ServiceObservation:
    """Normalise a Statuspage ``/api/v2/summary.json`` (or ``status.json``) body.

    The first unresolved incident wins. Without an incidents list the page's
    overall ``status.indicator`` is used instead.
    """
    if _is_summary(summary):
        active = _unresolved(summary)  # type: ignore[arg-type]
        if not active:
            return ServiceObservation.operational()
        inc = active[0]
        incident_id = inc.get("id") or inc.get("shortlink") or inc.get("url")
        return ServiceObservation(
            state=State.INCIDENT,
            severity=_impact(inc),
            title=inc.get("name") or "Service Incident",
            started_at=inc.get("started_at") or inc.get("created_at"),
            incident_id=str(incident_id) if incident_id else None,
        )

    status = summary.get("status") if isinstance(summary, dict) else None
    indicator = status.get("indicator") if isinstance(status, dict) else None
    if isinstance(indicator, str):
        ind = indicator.lower()
        title = status.get("description") or "Service Incident"  # type: ignore[union-attr]
        if ind == "none":
            return ServiceObservation.operational()
        if ind == "minor":
            return ServiceObservation(state=State.INCIDENT, severity=Severity.MINOR, title=title)
        if ind in ("major", "critical"):
            return ServiceObservation(state=State.INCIDENT, severity=Severity.CRITICAL, title=title)
    return ServiceObservation.unknown()


def active_incidents(summary: object) -> list[ActiveIncident]:
    """Every unresolved incident in a Statuspage summary."""
    if not _is_summary(summary):
        raise ProviderError("not a Statuspage summary")
    out: list[ActiveIncident] = []
    for inc in _unresolved(summary):  # type: ignore[arg-type]
        incident_id = inc.get("id")
        out.append(ActiveIncident(
            incident_id=str(incident_id) if incident_id else None,
            title=inc.get("name") or inc.get("title") or "Incident detected",
            started_at=inc.get("started_at") or inc.get("created_at") or inc.get("startedAt"),
            severity=_impact(inc),
        ))
    return out


class StatuspageProvider(StatusProvider):
    """Single-incident view of a Statuspage summary endpoint."""

    def __init__(self, service: ServiceDescriptor, client: httpx.AsyncClient) -> None:
        super().__init__(service, client)
        if not service.url:
            raise ValueError(f"{service.name}: statuspage source needs a url")

    async def fetch_observation(self) -> ServiceObservation:
        return parse_statuspage_summary(await self._get_json(self._service.url))  # type: ignore[arg-type]


class StatuspageIncidentsProvider(MultiIncidentProvider, StatuspageProvider):
    """Statuspage summary tracked incident by incident."""

    async def fetch_active_incidents(self) -> list[ActiveIncident]:
        summary = await self._get_json(self._service.url)  # type: ignore[arg-type]
        try:
            return active_incidents(summary)
        except ProviderError as exc:
            raise ProviderError(f"{self.name}: {exc}") from exc
