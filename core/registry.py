from __future__ import annotations

from providers.base import StatusProvider


class ServiceRegistry:
    """Central registry of monitored services and their observation sources.

    The set is fixed at configuration time. Adding a service only needs a
    provider built for its descriptor and a call to ``register()``.
    """

    def __init__(self) -> None:
        self._providers: list[StatusProvider] = []

    def register(self, provider: StatusProvider) -> None:
        if any(p.name == provider.name for p in self._providers):
            raise ValueError(f"Service {provider.name!r} is already registered")
        self._providers.append(provider)

    @property
    def providers(self) -> list[StatusProvider]:
        return list(self._providers)
