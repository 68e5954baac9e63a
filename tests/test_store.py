from __future__ import annotations

from core.settings import Settings
from core.state import StateRepository
from core.store import FallbackStore, KeyValueStore, MemoryStore, SqliteStore, StoreError, open_store
from models.observation import ServiceObservation, Severity, State
from models.state import PersistedIncidentState


class BrokenStore(KeyValueStore):
    def get(self, key):
        raise StoreError("down")

    def set(self, key, value):
        raise StoreError("down")


def test_memory_store_get_set() -> None:
    store = MemoryStore()
    assert store.get("missing") is None
    store.set("a", "1")
    store.set("a", "2")
    assert store.get("a") == "2"


def test_sqlite_store_persists_across_instances(tmp_path) -> None:
    path = str(tmp_path / "kv" / "state.db")
    first = SqliteStore(path)
    first.set("state:x", '{"state": "incident"}')
    first.close()

    second = SqliteStore(path)
    assert second.get("state:x") == '{"state": "incident"}'
    assert second.get("state:y") is None
    second.close()


def test_sqlite_store_rejects_empty_path() -> None:
    try:
        SqliteStore("")
    except StoreError:
        pass
    else:
        raise AssertionError("expected StoreError")


def test_fallback_store_absorbs_backend_failure() -> None:
    store = FallbackStore(BrokenStore())
    store.set("k", "v")
    assert store.get("k") == "v"


def test_fallback_store_prefers_primary() -> None:
    primary = MemoryStore()
    store = FallbackStore(primary)
    store.set("k", "v")
    assert primary.get("k") == "v"


def test_open_store_memory_backend() -> None:
    assert isinstance(open_store(Settings(store_backend="memory")), MemoryStore)


def test_open_store_sqlite_backend(tmp_path) -> None:
    store = open_store(Settings(store_backend="sqlite", store_path=str(tmp_path / "s.db")))
    assert isinstance(store, FallbackStore)
    store.set("k", "v")
    assert store.get("k") == "v"


def test_open_store_degrades_to_memory_when_path_unusable(tmp_path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")
    store = open_store(Settings(store_backend="sqlite", store_path=str(blocker / "nested.db")))
    assert isinstance(store, MemoryStore)


def test_repository_defaults_for_unknown_service(repo) -> None:
    state = repo.load("https://nothing.example.com")
    assert state == PersistedIncidentState()
    assert state.state is State.UNKNOWN


def test_repository_survives_corrupt_record(store, repo) -> None:
    store.set("state:svc", "{not json")
    assert repo.load("svc") == PersistedIncidentState()
    store.set("state:svc", "[1, 2]")
    assert repo.load("svc") == PersistedIncidentState()


def test_repository_tolerates_partial_record(store, repo) -> None:
    store.set("state:svc", '{"state": "incident", "startKey": "ts:1", "lastNonIncidentTs": "oops", "notifiedStartKeys": "x"}')
    state = repo.load("svc")
    assert state.state is State.INCIDENT
    assert state.start_key == "ts:1"
    assert state.last_non_incident_ts == 0
    assert state.notified_start_keys == ()


def test_repository_saves_and_loads_state(repo) -> None:
    state = PersistedIncidentState(
        state=State.INCIDENT,
        start_key="ts:1",
        started_at="2024-05-01T10:00:00Z",
        notified_start_keys=("ts:1",),
        start_key_to_title={"ts:1": "API errors"},
    )
    repo.save("svc", state)
    assert repo.load("svc") == state


def test_repository_run_marker(store, repo) -> None:
    assert repo.last_run_at() == 0
    repo.mark_run(1234)
    assert repo.last_run_at() == 1234
    store.set("meta:lastRunAt", "garbage")
    assert repo.last_run_at() == 0


def test_repository_webhook_observations(store, repo) -> None:
    assert repo.load_webhook("apple") is None
    obs = ServiceObservation(state=State.INCIDENT, severity=Severity.CRITICAL, title="Down")
    repo.save_webhook("apple", obs)
    assert repo.load_webhook("apple") == obs
    store.set("webhook:apple", "{bad")
    assert repo.load_webhook("apple") is None
