from __future__ import annotations

import httpx

from models.observation import ServiceObservation
from models.service import ServiceDescriptor
from providers.base import StatusProvider


def normalize_local(data: object) -> ServiceObservation:
    """Vendor JSON already shaped as ``{state, severity, title, startedAt}``."""
    return ServiceObservation.from_dict(data)


class LocalJsonProvider(StatusProvider):
    """Reads an endpoint that already speaks the normalised observation shape."""

    def __init__(self, service: ServiceDescriptor, client: httpx.AsyncClient) -> None:
        super().__init__(service, client)
        if not service.url:
            raise ValueError(f"{service.name}: local_json source needs a url")

    async def fetch_observation(self) -> ServiceObservation:
        return normalize_local(await self._get_json(self._service.url))  # type: ignore[arg-type]
