from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable, Union

from core.keys import dedupe_key
from core.messages import TEST_PING
from core.multi_reconciler import MultiIncidentReconciler
from core.reconciler import IncidentReconciler, Notification, Reconciliation
from core.registry import ServiceRegistry
from core.state import StateRepository
from models.observation import ActiveIncident, ServiceObservation
from notifiers.base import Notifier
from providers.base import MultiIncidentProvider, ProviderError, StatusProvider

log = logging.getLogger(__name__)

DEFAULT_COALESCE_SECONDS = 60
DEFAULT_CONCURRENCY_LIMIT = 20

Fetched = Union[ServiceObservation, list[ActiveIncident]]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CycleReport:
    status: str
    checked: int = 0
    skipped: int = 0
    notifications: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class Monitor:
    """Runs poll cycles: fetch -> reconcile -> notify -> persist, per service.

    Fetches run concurrently under a shared ``asyncio.Semaphore``;
    reconciliation and persistence then run one service at a time in
    registry order, so services sharing a dedupe key never race within a
    cycle. Overlapping cycles are expected and handled by the suppression
    gate inside the reconcilers.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        repo: StateRepository,
        notifier: Notifier,
        reconciler: IncidentReconciler,
        multi_reconciler: MultiIncidentReconciler,
        coalesce_seconds: int = DEFAULT_COALESCE_SECONDS,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._registry = registry
        self._repo = repo
        self._notifier = notifier
        self._reconciler = reconciler
        self._multi = multi_reconciler
        self._coalesce_ms = int(coalesce_seconds) * 1000
        self._semaphore = asyncio.Semaphore(concurrency_limit)
        self._clock = clock

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def repo(self) -> StateRepository:
        return self._repo

    async def run_cycle(self, force: bool = False) -> CycleReport:
        """One pass over every registered service.

        Unless ``force`` is set, a cycle starting within the coalescing
        window of the last recorded run is a no-op; this absorbs scheduler
        double-firing.
        """
        now = self._clock()
        if not force:
            last = self._repo.last_run_at()
            if last and now - last < self._coalesce_ms:
                log.info("Cycle coalesced: last run %dms ago", now - last)
                return CycleReport(status="coalesced")
        self._repo.mark_run(now)

        providers = self._registry.providers
        if not providers:
            log.warning("No services registered")
            return CycleReport(status="ok")

        fetched = await asyncio.gather(*(self._fetch(p) for p in providers))

        report = CycleReport(status="ok")
        for provider, result in zip(providers, fetched):
            if result is None:
                report.skipped += 1
                continue
            try:
                report.notifications += await self._process(provider, result)
                report.checked += 1
            except Exception:
                log.exception("Reconcile failed for %s", provider.name)
                report.skipped += 1

        log.info(
            "Cycle done: %d checked, %d skipped, %d notification(s)",
            report.checked,
            report.skipped,
            report.notifications,
        )
        return report

    async def inspect(self) -> list[dict]:
        """Debug view: current observation next to persisted state, per service."""
        providers = self._registry.providers
        fetched = await asyncio.gather(*(self._fetch(p, raise_errors=True) for p in providers), return_exceptions=True)

        out: list[dict] = []
        for provider, result in zip(providers, fetched):
            if isinstance(result, BaseException):
                out.append({"name": provider.name, "error": str(result) or type(result).__name__})
                continue
            key = dedupe_key(provider.service)
            if isinstance(result, list):
                current: dict = {"activeIncidents": [asdict(i) for i in result]}
            else:
                current = result.to_dict()
            out.append({
                "name": provider.name,
                "currentObservation": current,
                "persistedState": self._repo.load(key).to_dict(),
                "dedupeKey": key,
            })
        return out

    def health(self) -> dict:
        return {"lastRunAt": self._repo.last_run_at()}

    async def test_ping(self) -> bool:
        return await self._deliver(TEST_PING)

    async def _fetch(self, provider: StatusProvider, raise_errors: bool = False) -> Fetched | None:
        async with self._semaphore:
            try:
                if isinstance(provider, MultiIncidentProvider):
                    return await provider.fetch_active_incidents()
                return await provider.fetch_observation()
            except ProviderError as exc:
                if raise_errors:
                    raise
                log.warning("Skipping %s this cycle: %s", provider.name, exc)
            except Exception:
                if raise_errors:
                    raise
                log.exception("Fetch failed for %s", provider.name)
        return None

    async def _process(self, provider: StatusProvider, fetched: Fetched) -> int:
        key = dedupe_key(provider.service)
        persisted = self._repo.load(key)
        now = self._clock()

        result: Reconciliation
        if isinstance(fetched, list):
            result = self._multi.reconcile(provider.service, fetched, persisted, now)
        else:
            result = self._reconciler.reconcile(provider.service, fetched, persisted, now)

        for notification in result.notifications:
            await self._notify(notification)
        self._repo.save(key, result.state)
        return len(result.notifications)

    async def _notify(self, notification: Notification) -> None:
        delivered = await self._deliver(notification.text)
        if not delivered:
            # Already claimed; the next cycle will not retry this one.
            log.error(
                "%s notification for %s (%s) was not delivered",
                notification.direction.value,
                notification.service,
                notification.start_key,
            )

    async def _deliver(self, text: str) -> bool:
        try:
            return await self._notifier.send(text)
        except Exception:
            log.exception("Notifier raised")
            return False
