from __future__ import annotations

from abc import ABC, abstractmethod

import httpx

from models.observation import ActiveIncident, ServiceObservation
from models.service import ServiceDescriptor

USER_AGENT = "ServiceStatusDashboard/1.0"


class ProviderError(Exception):
    """Upstream unreachable or returned something unusable.

    The poll cycle skips the service and leaves its state untouched.
    """


class StatusProvider(ABC):
    """Abstract base for every observation source.

    A provider has one capability: produce a ``ServiceObservation`` for its
    service. How it gets there (summary JSON, HTML heuristics, a feed, a
    pushed webhook) stays behind this interface.

    A shared ``httpx.AsyncClient`` is injected at construction time so that
    all providers reuse one connection pool.
    """

    def __init__(self, service: ServiceDescriptor, client: httpx.AsyncClient | None = None) -> None:
        self._service = service
        self._client = client

    @property
    def service(self) -> ServiceDescriptor:
        return self._service

    @property
    def name(self) -> str:
        return self._service.name

    @abstractmethod
    async def fetch_observation(self) -> ServiceObservation:
        """Fetch upstream and return the normalised observation.

        Raises ``ProviderError`` when nothing trustworthy could be read.
        """

    async def _get(self, url: str, accept: str = "*/*", headers: dict[str, str] | None = None) -> httpx.Response:
        if self._client is None:
            raise ProviderError(f"{self.name}: no HTTP client configured")
        merged = {"User-Agent": USER_AGENT, "Accept": accept, **(headers or {})}
        try:
            resp = await self._client.get(url, headers=merged, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name}: HTTP error fetching {url}: {exc}") from exc
        return resp

    async def _get_text(self, url: str) -> str:
        resp = await self._get(url)
        if resp.status_code != 200:
            raise ProviderError(f"{self.name}: unexpected status {resp.status_code} from {url}")
        return resp.text

    async def _get_json(self, url: str) -> object:
        resp = await self._get(url, accept="application/json")
        if resp.status_code != 200:
            raise ProviderError(f"{self.name}: unexpected status {resp.status_code} from {url}")
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name}: malformed JSON from {url}") from exc


class MultiIncidentProvider(StatusProvider):
    """A source that can list every concurrently active incident."""

    @abstractmethod
    async def fetch_active_incidents(self) -> list[ActiveIncident]:
        """Return the incidents upstream currently reports as unresolved."""
