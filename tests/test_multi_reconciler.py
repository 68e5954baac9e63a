from __future__ import annotations

import pytest

from core.dedup import Direction
from core.multi_reconciler import MultiIncidentReconciler
from models.observation import ActiveIncident, Severity, State
from models.state import PersistedIncidentState

from conftest import NOW_MS, T0, T0_MS, T1

MINUTE = 60_000

API = ActiveIncident(incident_id="a1", title="API errors", started_at=T0, severity=Severity.CRITICAL)
WEB = ActiveIncident(incident_id="w1", title="Dashboard slow", started_at=T1)


@pytest.fixture
def reconciler(gate) -> MultiIncidentReconciler:
    return MultiIncidentReconciler(gate)


def test_each_incident_gets_its_own_start_and_resolve(reconciler, service) -> None:
    state = PersistedIncidentState()
    cycles = [[API, WEB], [WEB], [], []]
    sent_per_cycle = []
    for i, active in enumerate(cycles):
        result = reconciler.reconcile(service, active, state, NOW_MS + i * 5 * MINUTE)
        sent_per_cycle.append(result.notifications)
        state = result.state

    first, second, third, fourth = sent_per_cycle
    assert [n.direction for n in first] == [Direction.START, Direction.START]
    assert first[0].text.startswith(":red_circle: Example: API errors")

    assert [n.direction for n in second] == [Direction.RESOLVE]
    assert second[0].start_key == f"ts:{T0_MS}"
    assert second[0].text.startswith(":white_check_mark: Example back to normal - API errors")
    assert "Started: 2024-05-01 10:00:00 UTC" in second[0].text

    assert [n.direction for n in third] == [Direction.RESOLVE]
    assert "Dashboard slow" in third[0].text

    assert fourth == ()
    assert state.state is State.OPERATIONAL
    assert state.start_key is None


def test_state_reflects_outstanding_incidents(reconciler, service) -> None:
    result = reconciler.reconcile(service, [API, WEB], PersistedIncidentState(), NOW_MS)
    state = result.state
    assert state.state is State.INCIDENT
    assert set(state.notified_start_keys) == {f"ts:{T0_MS}", "ts:1714566600000"}
    assert state.start_key_to_title[f"ts:{T0_MS}"] == "API errors"
    assert state.start_key_to_started_at[f"ts:{T0_MS}"] == T0
    assert state.last_non_incident_ts == 0


def test_repeated_polls_do_not_realert(reconciler, service) -> None:
    state = PersistedIncidentState()
    total = 0
    for i in range(4):
        result = reconciler.reconcile(service, [API], state, NOW_MS + i * MINUTE)
        total += len(result.notifications)
        state = result.state
    assert total == 1


def test_title_churn_keeps_identity(reconciler, service) -> None:
    state = reconciler.reconcile(service, [API], PersistedIncidentState(), NOW_MS).state
    renamed = ActiveIncident(incident_id="a1", title="API errors (monitoring)", started_at=T0)
    result = reconciler.reconcile(service, [renamed], state, NOW_MS + MINUTE)
    assert result.notifications == ()


def test_overlapping_invocations_send_once(reconciler, service) -> None:
    persisted = PersistedIncidentState()
    first = reconciler.reconcile(service, [API], persisted, NOW_MS)
    second = reconciler.reconcile(service, [API], persisted, NOW_MS + 5)
    assert len(first.notifications) + len(second.notifications) == 1
    assert second.state.notified_start_keys == first.state.notified_start_keys


def test_untrackable_incident_is_ignored(reconciler, service) -> None:
    vague = ActiveIncident(incident_id=None, title="Something", started_at=None)
    result = reconciler.reconcile(service, [vague], PersistedIncidentState(), NOW_MS)
    assert result.notifications == ()
    assert result.state.state is State.OPERATIONAL


def test_incident_keyed_by_id_without_timestamp(reconciler, service) -> None:
    by_id = ActiveIncident(incident_id="x9", title="Queue delays", started_at=None)
    result = reconciler.reconcile(service, [by_id], PersistedIncidentState(), NOW_MS)
    assert [n.start_key for n in result.notifications] == ["id:x9"]
    assert result.state.start_key_to_started_at["id:x9"]
