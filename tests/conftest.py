"""Shared fixtures: in-memory store, controllable clock, recording notifier."""
from __future__ import annotations

import pytest

from core.dedup import SuppressionGate
from core.state import StateRepository
from core.store import MemoryStore
from models.observation import ServiceObservation
from models.service import ServiceDescriptor, SourceKind
from notifiers.base import Notifier
from providers.base import ProviderError, StatusProvider

T0 = "2024-05-01T10:00:00Z"
T0_MS = 1714557600000
T1 = "2024-05-01T12:30:00Z"
NOW_MS = 1714560000000


class Clock:
    def __init__(self, now_ms: int = NOW_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


class RecordingNotifier(Notifier):
    def __init__(self, deliver: bool = True, enabled: bool = True) -> None:
        self.sent: list[str] = []
        self._deliver = deliver
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def send(self, text: str) -> bool:
        self.sent.append(text)
        return self._deliver


class ScriptedProvider(StatusProvider):
    """Returns queued observations in order; an Exception entry is raised."""

    def __init__(self, service: ServiceDescriptor, script: list) -> None:
        super().__init__(service)
        self.script = list(script)

    async def fetch_observation(self) -> ServiceObservation:
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def repo(store) -> StateRepository:
    return StateRepository(store)


@pytest.fixture
def gate(store) -> SuppressionGate:
    return SuppressionGate(store, window_seconds=120)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service() -> ServiceDescriptor:
    return ServiceDescriptor(
        name="Example",
        source=SourceKind.STATUSPAGE,
        url="https://status.example.com/api/v2/summary.json",
        status_url="https://status.example.com/",
    )


def provider_error(msg: str = "boom") -> ProviderError:
    return ProviderError(msg)
