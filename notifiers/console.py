from __future__ import annotations

from datetime import datetime, timezone

from notifiers.base import Notifier


class ConsoleNotifier(Notifier):
    """Prints notifications to stdout, for local runs without Slack."""

    async def send(self, text: str) -> bool:
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        print(f"[{ts}] {text}\n", flush=True)
        return True
