import asyncio
import logging
from typing import Set

from cube_waitlist.services.notifier import NotificationResult, Notifier
from cube_waitlist.utils.audit import audit

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Runs confirmation sends as background tasks.

    A dispatched send is observed only for logging: its outcome never
    reaches the registration result. Pending tasks are referenced here until
    they finish so the loop cannot garbage-collect them mid-flight.
    """

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, email: str) -> "asyncio.Task[NotificationResult]":
        task = asyncio.create_task(self._deliver(email))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, email: str) -> NotificationResult:
        try:
            result = await self.notifier.notify(email)
        except Exception as e:
            # A notifier that raises instead of returning a failure result
            result = NotificationResult.failed(f"{type(e).__name__}: {e}")

        if result.ok:
            audit("WAITLIST_NOTIFY", email=email, sent=True)
        else:
            logger.warning(f"❌ Failed to send waitlist confirmation to {email}: {result.reason}")
            audit("WAITLIST_NOTIFY", email=email, sent=False, reason=result.reason)
        return result

    async def drain(self) -> None:
        """Wait for every in-flight send (used on shutdown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
