from __future__ import annotations

import logging
import uuid
from enum import Enum

from core.store import KeyValueStore
from models.state import SuppressionRecord

log = logging.getLogger(__name__)

DEFAULT_SUPPRESS_WINDOW_SECONDS = 120


class Direction(str, Enum):
    START = "start"
    RESOLVE = "resolve"


class ClaimResult(Enum):
    GRANTED = "granted"
    # Some invocation (maybe this one, earlier) already claimed this exact
    # notification. Callers record it as sent.
    DUPLICATE = "duplicate"
    # The record holds a recent attempt under another signature, which only
    # a legacy or foreign writer leaves behind. Retry next cycle.
    COOLDOWN = "cooldown"


class ClaimCache:
    """In-process record of the notification signatures this process claimed.

    Consulted before the store so repeat polls inside one process skip the
    round trip. Lives as long as the process; an empty cache is always safe.
    """

    def __init__(self) -> None:
        self._seen: set[tuple[str, str]] = set()

    def seen(self, record_key: str, signature: str) -> bool:
        return (record_key, signature) in self._seen

    def add(self, record_key: str, signature: str) -> None:
        self._seen.add((record_key, signature))

    @property
    def size(self) -> int:
        return len(self._seen)


class SuppressionGate:
    """Makes notification delivery effectively at-most-once without locks.

    Each (service, direction, incident identity) triple owns one record. A
    claim writes its timestamp and signature *before* the caller talks to the
    notifier, so an overlapping invocation that reads afterwards backs off.
    The claim is then read back: if another invocation overwrote it in the
    meantime, that invocation owns the send.
    """

    def __init__(
        self,
        store: KeyValueStore,
        window_seconds: int = DEFAULT_SUPPRESS_WINDOW_SECONDS,
        cache: ClaimCache | None = None,
    ) -> None:
        self._store = store
        self._window_ms = int(window_seconds) * 1000
        self._cache = cache

    @staticmethod
    def record_key(dedupe_key: str, direction: Direction, start_key: str) -> str:
        return f"notify:{dedupe_key}:{direction.value}:{start_key}"

    @staticmethod
    def signature(direction: Direction, start_key: str) -> str:
        return f"{direction.value}:{start_key}"

    def try_claim(
        self,
        dedupe_key: str,
        direction: Direction,
        start_key: str,
        now_ms: int,
    ) -> ClaimResult:
        key = self.record_key(dedupe_key, direction, start_key)
        sig = self.signature(direction, start_key)

        if self._cache is not None and self._cache.seen(key, sig):
            return ClaimResult.DUPLICATE

        record = SuppressionRecord.from_json(self._store.get(key))
        if record.last_signature == sig:
            self._remember(key, sig)
            return ClaimResult.DUPLICATE
        if record.last_sent_at_ms and now_ms - record.last_sent_at_ms < self._window_ms:
            log.info("Suppressed %s for %s: last attempt %dms ago", sig, dedupe_key, now_ms - record.last_sent_at_ms)
            return ClaimResult.COOLDOWN

        claim_id = uuid.uuid4().hex
        self._store.set(key, SuppressionRecord(now_ms, sig, claim_id).to_json())
        winner = SuppressionRecord.from_json(self._store.get(key))
        self._remember(key, sig)
        if winner.claim_id != claim_id:
            log.info("Lost claim race for %s on %s", sig, dedupe_key)
            return ClaimResult.DUPLICATE
        return ClaimResult.GRANTED

    def _remember(self, key: str, sig: str) -> None:
        if self._cache is not None:
            self._cache.add(key, sig)
