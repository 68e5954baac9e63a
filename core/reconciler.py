from __future__ import annotations

import logging
from dataclasses import dataclass

from core.dedup import ClaimResult, Direction, SuppressionGate
from core.keys import dedupe_key, iso_from_ms, parse_timestamp_ms, start_key
from core.messages import resolve_message, start_message
from models.observation import ServiceObservation, State
from models.service import ServiceDescriptor
from models.state import PersistedIncidentState

log = logging.getLogger(__name__)

DEFAULT_RESET_UNKNOWN_MINUTES = 60


@dataclass(frozen=True)
class Notification:
    direction: Direction
    service: str
    start_key: str
    text: str


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of one reconcile step.

    The caller sends ``notifications`` (already claimed through the
    suppression gate) and then persists ``state``.
    """

    state: PersistedIncidentState
    notifications: tuple[Notification, ...] = ()


class IncidentReconciler:
    """Turns a stream of observations into start/resolve notifications for a
    service that has at most one incident in flight.

    ``reconcile`` never reads or writes the persisted incident state itself;
    it receives the last saved state and returns the next one. The only store
    traffic it causes goes through the suppression gate, which is what keeps
    overlapping invocations from double-sending.
    """

    def __init__(
        self,
        gate: SuppressionGate,
        reset_unknown_minutes: int = DEFAULT_RESET_UNKNOWN_MINUTES,
    ) -> None:
        self._gate = gate
        self._reset_ms = int(reset_unknown_minutes) * 60 * 1000

    def reconcile(
        self,
        service: ServiceDescriptor,
        observation: ServiceObservation,
        persisted: PersistedIncidentState,
        now_ms: int,
    ) -> Reconciliation:
        key = dedupe_key(service)
        if observation.state is State.INCIDENT:
            return self._on_incident(service, key, observation, persisted, now_ms)
        if observation.state is State.OPERATIONAL:
            result = self._on_operational(service, key, persisted, now_ms)
        else:
            result = self._on_unknown(persisted, now_ms)
        return self._grace_reset(key, result, now_ms)

    def _on_incident(
        self,
        service: ServiceDescriptor,
        key: str,
        observation: ServiceObservation,
        persisted: PersistedIncidentState,
        now_ms: int,
    ) -> Reconciliation:
        # An onset upstream cannot date is treated like a missing one.
        reported_at = observation.started_at if parse_timestamp_ms(observation.started_at) is not None else None
        started_at = reported_at or persisted.started_at or iso_from_ms(now_ms)
        skey = (
            start_key(reported_at, observation.incident_id)
            or persisted.start_key
            or start_key(started_at, None)
            or start_key(iso_from_ms(now_ms), None)
        )
        tracked = persisted.evolve(
            state=State.INCIDENT,
            start_key=skey,
            started_at=started_at,
            incident_id=observation.incident_id or persisted.incident_id,
            last_non_incident_ts=0,
        )

        # Same identity as the start we already announced: title or detail
        # churn upstream must never re-alert.
        if persisted.last_notified_start_key == skey:
            return Reconciliation(tracked)

        claim = self._gate.try_claim(key, Direction.START, skey, now_ms)
        if claim is ClaimResult.COOLDOWN:
            return Reconciliation(tracked)

        notified = tracked.evolve(last_notified_start_key=skey, last_notified_start_at=started_at)
        if claim is ClaimResult.DUPLICATE:
            log.info("Start for %s (%s) already claimed elsewhere", service.name, skey)
            return Reconciliation(notified)

        log.info("Incident start for %s (%s, %s)", service.name, skey, observation.severity.value)
        text = start_message(service, observation.severity, observation.title, started_at)
        return Reconciliation(notified, (Notification(Direction.START, service.name, skey, text),))

    def _on_operational(
        self,
        service: ServiceDescriptor,
        key: str,
        persisted: PersistedIncidentState,
        now_ms: int,
    ) -> Reconciliation:
        skey = persisted.start_key or start_key(persisted.started_at, None)
        cleared = persisted.evolve(
            state=State.OPERATIONAL,
            start_key=None,
            started_at=None,
            incident_id=None,
            last_non_incident_ts=max(persisted.last_non_incident_ts, now_ms),
        )

        start_was_sent = bool(skey) and persisted.last_notified_start_key == skey
        resolve_pending = bool(skey) and persisted.last_notified_resolve_key != skey
        if not (start_was_sent and resolve_pending):
            # Nobody was told about this incident (or the resolve already
            # went out), so there is nothing to pair a resolve with.
            return Reconciliation(cleared)

        claim = self._gate.try_claim(key, Direction.RESOLVE, skey, now_ms)
        if claim is ClaimResult.COOLDOWN:
            return Reconciliation(
                persisted.evolve(last_non_incident_ts=persisted.last_non_incident_ts or now_ms)
            )

        resolved = cleared.evolve(
            last_notified_resolve_key=skey,
            last_notified_resolve_at=persisted.started_at,
            last_non_incident_ts=now_ms,
        )
        if claim is ClaimResult.DUPLICATE:
            log.info("Resolve for %s (%s) already claimed elsewhere", service.name, skey)
            return Reconciliation(resolved)

        log.info("Incident resolved for %s (%s)", service.name, skey)
        text = resolve_message(service, persisted.started_at, now_ms)
        return Reconciliation(resolved, (Notification(Direction.RESOLVE, service.name, skey, text),))

    @staticmethod
    def _on_unknown(persisted: PersistedIncidentState, now_ms: int) -> Reconciliation:
        # Uncertainty is not recovery: no resolve, only the grace timer moves.
        if persisted.state is State.INCIDENT:
            return Reconciliation(
                persisted.evolve(last_non_incident_ts=persisted.last_non_incident_ts or now_ms)
            )
        return Reconciliation(
            persisted.evolve(
                state=State.UNKNOWN,
                last_non_incident_ts=max(persisted.last_non_incident_ts, now_ms),
            )
        )

    def _grace_reset(self, key: str, result: Reconciliation, now_ms: int) -> Reconciliation:
        state = result.state
        if result.notifications or state.state is not State.INCIDENT:
            return result
        if not state.last_non_incident_ts or now_ms - state.last_non_incident_ts < self._reset_ms:
            return result

        log.warning(
            "Resetting %s to operational after %d min without incident evidence",
            key,
            (now_ms - state.last_non_incident_ts) // 60000,
        )
        return Reconciliation(
            state.evolve(
                state=State.OPERATIONAL,
                start_key=None,
                started_at=None,
                incident_id=None,
                last_non_incident_ts=now_ms,
            )
        )
