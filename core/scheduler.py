from __future__ import annotations

import asyncio
import logging

from core.monitor import Monitor

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 300


class Scheduler:
    """Fires a poll cycle every ``interval_seconds`` until cancelled.

    A cycle that outlasts the interval is not waited on: the next one starts
    on schedule and may overlap it. Coalescing in ``Monitor.run_cycle`` and
    the suppression gate make that safe.
    """

    def __init__(self, monitor: Monitor, interval_seconds: int = DEFAULT_POLL_INTERVAL) -> None:
        self._monitor = monitor
        self._interval = interval_seconds
        self._inflight: set[asyncio.Task] = set()

    async def _cycle(self) -> None:
        try:
            await self._monitor.run_cycle()
        except Exception:
            log.exception("Poll cycle failed")

    async def run(self) -> None:
        log.info("Scheduler started (interval=%ds)", self._interval)
        try:
            while True:
                task = asyncio.create_task(self._cycle(), name="poll-cycle")
                self._inflight.add(task)
                task.add_done_callback(self._inflight.discard)
                await asyncio.sleep(self._interval)
        finally:
            inflight = list(self._inflight)
            for task in inflight:
                task.cancel()
            await asyncio.gather(*inflight, return_exceptions=True)
