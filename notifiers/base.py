from __future__ import annotations

from abc import ABC, abstractmethod


class Notifier(ABC):
    """Delivers a formatted message to the single outbound channel.

    Fire-and-forget from the poll cycle's point of view: ``send`` reports
    whether delivery looked successful but must never raise, and its result
    is not fed back into incident bookkeeping.
    """

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    async def send(self, text: str) -> bool:
        """Deliver ``text``. Returns False on any delivery failure."""
