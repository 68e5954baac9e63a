from __future__ import annotations

import json
import logging

from core.store import KeyValueStore
from models.observation import ServiceObservation
from models.state import PersistedIncidentState

log = logging.getLogger(__name__)

_LAST_RUN_KEY = "meta:lastRunAt"


class StateRepository:
    """Typed access to the records kept in the shared key-value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def load(self, dedupe_key: str) -> PersistedIncidentState:
        return PersistedIncidentState.from_json(self._store.get(f"state:{dedupe_key}"))

    def save(self, dedupe_key: str, state: PersistedIncidentState) -> None:
        self._store.set(f"state:{dedupe_key}", state.to_json())

    def last_run_at(self) -> int:
        raw = self._store.get(_LAST_RUN_KEY)
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    def mark_run(self, ts_ms: int) -> None:
        self._store.set(_LAST_RUN_KEY, str(int(ts_ms)))

    def load_webhook(self, key: str) -> ServiceObservation | None:
        raw = self._store.get(f"webhook:{key}")
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning("Discarding malformed webhook record for %s", key)
            return None
        return ServiceObservation.from_dict(data)

    def save_webhook(self, key: str, observation: ServiceObservation) -> None:
        self._store.set(f"webhook:{key}", json.dumps(observation.to_dict()))
