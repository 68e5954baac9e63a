from __future__ import annotations

import pytest

from core.dedup import ClaimResult, Direction
from core.keys import start_key
from core.reconciler import IncidentReconciler
from models.observation import ServiceObservation, Severity, State
from models.state import PersistedIncidentState, SuppressionRecord

from conftest import NOW_MS, T0, T1

MINUTE = 60_000


def incident(started_at=T0, incident_id=None, title="Elevated errors", severity=Severity.MINOR):
    return ServiceObservation(
        state=State.INCIDENT,
        severity=severity,
        title=title,
        started_at=started_at,
        incident_id=incident_id,
    )


OPERATIONAL = ServiceObservation.operational()
UNKNOWN = ServiceObservation.unknown()


@pytest.fixture
def reconciler(gate) -> IncidentReconciler:
    return IncidentReconciler(gate, reset_unknown_minutes=60)


def drive(reconciler, service, observations, now_ms=NOW_MS, step_ms=5 * MINUTE, state=None):
    """Feed observations in order, carrying state forward like the poll cycle does."""
    state = state or PersistedIncidentState()
    sent = []
    for i, obs in enumerate(observations):
        result = reconciler.reconcile(service, obs, state, now_ms + i * step_ms)
        sent.extend(result.notifications)
        state = result.state
    return state, sent


def test_incident_then_recovery_sends_one_start_and_one_resolve(reconciler, service) -> None:
    state, sent = drive(reconciler, service, [incident(), incident(), OPERATIONAL, OPERATIONAL])

    assert [n.direction for n in sent] == [Direction.START, Direction.RESOLVE]
    assert sent[0].start_key == start_key(T0, None)
    assert sent[0].text.startswith(":large_yellow_circle: Example: Elevated errors")
    assert "Started: 2024-05-01 10:00:00 UTC" in sent[0].text
    assert "Status: https://status.example.com/" in sent[0].text
    assert sent[1].text.startswith(":white_check_mark: Example back to normal")
    assert state.state is State.OPERATIONAL
    assert state.start_key is None


def test_critical_severity_uses_red_marker(reconciler, service) -> None:
    _, sent = drive(reconciler, service, [incident(severity=Severity.CRITICAL)])
    assert sent[0].text.startswith(":red_circle:")


def test_title_and_id_churn_do_not_realert(reconciler, service) -> None:
    state, sent = drive(
        reconciler,
        service,
        [
            incident(title="Investigating"),
            incident(title="Identified", incident_id="abc"),
            incident(title="Monitoring", incident_id="def"),
        ],
    )
    assert len(sent) == 1
    assert state.state is State.INCIDENT


def test_incident_without_timestamp_or_id_keeps_first_key(reconciler, service) -> None:
    state, sent = drive(reconciler, service, [incident(started_at=None), incident(started_at=None)])
    assert len(sent) == 1
    assert state.start_key == sent[0].start_key
    assert state.started_at is not None


def test_incident_id_used_when_no_timestamp(reconciler, service) -> None:
    _, sent = drive(reconciler, service, [incident(started_at=None, incident_id="inc-7")])
    assert sent[0].start_key == "id:inc-7"


def test_no_resolve_without_start(reconciler, service, store) -> None:
    # Another process attempted this start moments ago with a different payload.
    skey = start_key(T0, None)
    store.set(f"notify:https://status.example.com:start:{skey}", SuppressionRecord(NOW_MS - 1000, "").to_json())

    state, sent = drive(reconciler, service, [incident(), OPERATIONAL], step_ms=1000)
    assert sent == []
    assert state.state is State.OPERATIONAL
    assert state.last_notified_start_key is None


def test_cooldown_on_start_retries_next_cycle(reconciler, service, store) -> None:
    skey = start_key(T0, None)
    store.set(f"notify:https://status.example.com:start:{skey}", SuppressionRecord(NOW_MS - 1000, "").to_json())

    state, sent = drive(reconciler, service, [incident(), incident()], step_ms=5 * MINUTE)
    assert [n.direction for n in sent] == [Direction.START]
    assert state.last_notified_start_key == skey


def test_overlapping_invocations_send_once(reconciler, service) -> None:
    persisted = PersistedIncidentState()
    first = reconciler.reconcile(service, incident(), persisted, NOW_MS)
    second = reconciler.reconcile(service, incident(), persisted, NOW_MS + 10)

    assert len(first.notifications) + len(second.notifications) == 1
    # the loser still records the start as done
    assert second.state.last_notified_start_key == start_key(T0, None)

    after = first.state
    r1 = reconciler.reconcile(service, OPERATIONAL, after, NOW_MS + MINUTE)
    r2 = reconciler.reconcile(service, OPERATIONAL, after, NOW_MS + MINUTE + 10)
    assert len(r1.notifications) + len(r2.notifications) == 1


def test_duplicate_claim_marks_start_notified(reconciler, service, gate) -> None:
    skey = start_key(T0, None)
    assert gate.try_claim("https://status.example.com", Direction.START, skey, NOW_MS) is ClaimResult.GRANTED

    result = reconciler.reconcile(service, incident(), PersistedIncidentState(), NOW_MS + 5)
    assert result.notifications == ()
    assert result.state.last_notified_start_key == skey
    assert result.state.start_key == skey


def test_unknown_never_resolves(reconciler, service) -> None:
    state, sent = drive(reconciler, service, [incident(), UNKNOWN, UNKNOWN], step_ms=MINUTE)
    assert len(sent) == 1
    assert state.state is State.INCIDENT


def test_unknown_from_quiet_state(reconciler, service) -> None:
    state, sent = drive(reconciler, service, [OPERATIONAL, UNKNOWN])
    assert sent == []
    assert state.state is State.UNKNOWN


def test_grace_period_resets_silently(reconciler, service) -> None:
    state, sent = drive(reconciler, service, [incident()])
    assert len(sent) == 1

    start = NOW_MS + MINUTE
    state = reconciler.reconcile(service, UNKNOWN, state, start).state
    assert state.last_non_incident_ts == start
    state = reconciler.reconcile(service, UNKNOWN, state, start + 30 * MINUTE).state
    assert state.state is State.INCIDENT
    assert state.last_non_incident_ts == start

    result = reconciler.reconcile(service, UNKNOWN, state, start + 60 * MINUTE)
    assert result.notifications == ()
    assert result.state.state is State.OPERATIONAL
    assert result.state.start_key is None

    # A later operational poll has nothing to resolve.
    later = reconciler.reconcile(service, OPERATIONAL, result.state, start + 65 * MINUTE)
    assert later.notifications == ()


def test_incident_evidence_restarts_grace_timer(reconciler, service) -> None:
    state, _ = drive(reconciler, service, [incident()])
    state = reconciler.reconcile(service, UNKNOWN, state, NOW_MS + 10 * MINUTE).state
    state = reconciler.reconcile(service, incident(), state, NOW_MS + 50 * MINUTE).state
    assert state.last_non_incident_ts == 0

    state = reconciler.reconcile(service, UNKNOWN, state, NOW_MS + 80 * MINUTE).state
    result = reconciler.reconcile(service, UNKNOWN, state, NOW_MS + 120 * MINUTE)
    assert result.state.state is State.INCIDENT


def test_flapping_does_not_realert_same_incident(reconciler, service) -> None:
    _, sent = drive(reconciler, service, [incident(), OPERATIONAL, incident(), OPERATIONAL])
    assert [n.direction for n in sent] == [Direction.START, Direction.RESOLVE]


def test_restart_with_new_start_time_is_a_new_incident(reconciler, service) -> None:
    state, sent = drive(reconciler, service, [incident(started_at=T0), incident(started_at=T1), OPERATIONAL])

    assert [n.direction for n in sent] == [Direction.START, Direction.START, Direction.RESOLVE]
    assert sent[0].start_key != sent[1].start_key
    assert sent[2].start_key == sent[1].start_key
    assert state.state is State.OPERATIONAL


def test_same_incident_after_resolve_stays_quiet(reconciler, service) -> None:
    state, sent = drive(reconciler, service, [incident(), OPERATIONAL])
    assert len(sent) == 2
    # upstream briefly reopens the very same incident
    again = reconciler.reconcile(service, incident(), state, NOW_MS + 20 * MINUTE)
    assert again.notifications == ()


def test_undated_onset_still_alerts_once(reconciler, service) -> None:
    state, sent = drive(
        reconciler,
        service,
        [incident(started_at="TBD"), incident(started_at="TBD"), incident(started_at="TBD"), OPERATIONAL],
    )

    assert [n.direction for n in sent] == [Direction.START, Direction.RESOLVE]
    assert sent[0].start_key == f"ts:{NOW_MS}"
    assert sent[1].start_key == sent[0].start_key
    assert state.state is State.OPERATIONAL


def test_undated_onset_keeps_incident_id(reconciler, service) -> None:
    _, sent = drive(reconciler, service, [incident(started_at="TBD", incident_id="inc-3")])
    assert sent[0].start_key == "id:inc-3"
