"""Test doubles for the entry store and notifier."""
import asyncio
import uuid
from typing import List, Set

from cube_waitlist.core.config import Settings
from cube_waitlist.core.exceptions import NotificationError, StoreUnavailableError
from cube_waitlist.services.entry_store import Entry, InMemoryEntryStore, NewEntry
from cube_waitlist.services.notifier import NotificationResult, Notifier


class FakeEntryStore(InMemoryEntryStore):
    """In-memory store that counts calls and can be told to fail."""

    def __init__(self):
        super().__init__()
        self.calls = {"find": 0, "insert": 0, "list": 0, "delete": 0}
        self.fail_on: Set[str] = set()
        self.fail_delete_ids: Set[uuid.UUID] = set()
        self.vanished_ids: Set[uuid.UUID] = set()
        self.cancel_delete_ids: Set[uuid.UUID] = set()

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise StoreUnavailableError(f"{op} failed: connection refused")

    async def find_by_email(self, email: str) -> List[Entry]:
        self.calls["find"] += 1
        self._maybe_fail("find")
        return await super().find_by_email(email)

    async def insert(self, entry: NewEntry) -> uuid.UUID:
        self.calls["insert"] += 1
        self._maybe_fail("insert")
        return await super().insert(entry)

    async def list_all(self) -> List[Entry]:
        self.calls["list"] += 1
        self._maybe_fail("list")
        return await super().list_all()

    async def delete_by_id(self, entry_id: uuid.UUID) -> bool:
        self.calls["delete"] += 1
        self._maybe_fail("delete")
        if entry_id in self.fail_delete_ids:
            raise StoreUnavailableError(f"delete of {entry_id} timed out")
        if entry_id in self.cancel_delete_ids:
            raise asyncio.CancelledError()
        if entry_id in self.vanished_ids:
            await super().delete_by_id(entry_id)
            return False
        return await super().delete_by_id(entry_id)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


class RecordingNotifier(Notifier):
    def __init__(self, delay: float = 0):
        self.sent: List[str] = []
        self.delay = delay

    async def notify(self, email: str) -> NotificationResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.sent.append(email)
        return NotificationResult.sent()


class FailingNotifier(Notifier):
    def __init__(self, reason: str = "SMTP 535 authentication failed"):
        self.reason = reason
        self.attempts: List[str] = []

    async def notify(self, email: str) -> NotificationResult:
        self.attempts.append(email)
        return NotificationResult.failed(self.reason)


class RaisingNotifier(Notifier):
    def __init__(self):
        self.attempts: List[str] = []

    async def notify(self, email: str) -> NotificationResult:
        self.attempts.append(email)
        raise NotificationError("mail transport exploded")


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "memory://",
        "NOTIFIER_BACKEND": "log",
        "RATE_LIMIT_ENABLED": False,
        "ADMIN_TOKEN": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


