from __future__ import annotations

import logging
from typing import Iterable

from core.dedup import ClaimResult, Direction, SuppressionGate
from core.keys import dedupe_key, iso_from_ms, start_key
from core.messages import resolve_message, start_message
from core.reconciler import Notification, Reconciliation
from models.observation import ActiveIncident, State
from models.service import ServiceDescriptor
from models.state import PersistedIncidentState

log = logging.getLogger(__name__)


class MultiIncidentReconciler:
    """Reconciler for upstreams that report several incidents at once.

    Every active incident gets its own start key and its own start/resolve
    pair. Title and onset are cached per start key while the incident is
    active, because by the time it resolves the upstream summary no longer
    describes it.

    An incident that drops out of the active list is treated as resolved,
    whether or not upstream ever tagged it ``resolved``.
    """

    def __init__(self, gate: SuppressionGate) -> None:
        self._gate = gate

    def reconcile(
        self,
        service: ServiceDescriptor,
        active: Iterable[ActiveIncident],
        persisted: PersistedIncidentState,
        now_ms: int,
    ) -> Reconciliation:
        key = dedupe_key(service)
        notified = list(persisted.notified_start_keys)
        resolved = list(persisted.notified_resolve_keys)
        started_map = dict(persisted.start_key_to_started_at)
        titles = dict(persisted.start_key_to_title)
        notifications: list[Notification] = []
        changes: dict = {}

        active_keys: list[str] = []
        for incident in active:
            skey = start_key(incident.started_at, incident.incident_id)
            if skey is None:
                log.debug("Skipping untrackable incident %r on %s", incident.title, service.name)
                continue
            if skey not in active_keys:
                active_keys.append(skey)
            if skey in notified:
                continue

            claim = self._gate.try_claim(key, Direction.START, skey, now_ms)
            if claim is ClaimResult.COOLDOWN:
                continue

            started_at = incident.started_at or iso_from_ms(now_ms)
            notified.append(skey)
            started_map[skey] = started_at
            titles[skey] = incident.title
            changes.update(
                start_key=skey,
                started_at=incident.started_at,
                incident_id=incident.incident_id,
                last_notified_start_key=skey,
                last_notified_start_at=started_at,
            )
            if claim is ClaimResult.GRANTED:
                log.info("Incident start for %s (%s)", service.name, skey)
                text = start_message(service, incident.severity, incident.title, started_at)
                notifications.append(Notification(Direction.START, service.name, skey, text))

        for skey in persisted.notified_start_keys:
            if skey in active_keys or skey in resolved:
                continue

            claim = self._gate.try_claim(key, Direction.RESOLVE, skey, now_ms)
            if claim is ClaimResult.COOLDOWN:
                continue

            resolved.append(skey)
            changes.update(
                last_notified_resolve_key=skey,
                last_notified_resolve_at=started_map.get(skey),
            )
            if claim is ClaimResult.GRANTED:
                log.info("Incident resolved for %s (%s)", service.name, skey)
                text = resolve_message(service, started_map.get(skey), now_ms, titles.get(skey) or "Incident")
                notifications.append(Notification(Direction.RESOLVE, service.name, skey, text))

        resolved_set = set(resolved)
        outstanding = [k for k in notified if k not in resolved_set]

        state = persisted.evolve(
            notified_start_keys=tuple(notified),
            notified_resolve_keys=tuple(resolved),
            start_key_to_started_at=started_map,
            start_key_to_title=titles,
            **changes,
        )
        if outstanding or active_keys:
            state = state.evolve(state=State.INCIDENT, last_non_incident_ts=0)
        else:
            state = state.evolve(
                state=State.OPERATIONAL,
                start_key=None,
                started_at=None,
                incident_id=None,
                last_non_incident_ts=max(persisted.last_non_incident_ts, now_ms),
            )
        return Reconciliation(state, tuple(notifications))
