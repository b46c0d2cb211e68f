import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from cube_waitlist.core.exceptions import (
    DuplicateEntryError,
    InvalidInputError,
    NotFoundError,
    PartialDeletionFailureError,
)
from cube_waitlist.services.entry_store import Entry, EntryStore, NewEntry
from cube_waitlist.services.notification_dispatcher import NotificationDispatcher
from cube_waitlist.utils.audit import audit

logger = logging.getLogger(__name__)

MAX_SOURCE_LENGTH = 64


@dataclass(frozen=True)
class RegistrationResult:
    email: str
    entry_id: uuid.UUID


@dataclass(frozen=True)
class DeletionOutcome:
    entry_id: uuid.UUID
    removed: bool
    error: Optional[str] = None


@dataclass
class DeletionReport:
    removed: int
    outcomes: List[DeletionOutcome] = field(default_factory=list)


class WaitlistService:
    """Registration, listing and deletion of waitlist entries.

    Registration is check-then-act: the duplicate lookup and the insert are
    two separate store calls, so two concurrent registrations of the same
    address can both pass the check. Unless the store enforces a unique
    index, both inserts land and both confirmations go out.
    """

    def __init__(
        self,
        store: EntryStore,
        dispatcher: NotificationDispatcher,
        case_insensitive: bool = True,
        await_delivery: bool = False,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.case_insensitive = case_insensitive
        self.await_delivery = await_delivery

    def normalize_email(self, raw_email: Optional[str]) -> str:
        email = (raw_email or "").strip()
        if self.case_insensitive:
            email = email.lower()
        return email

    def _validate(self, email: str) -> None:
        if not email:
            raise InvalidInputError("Email is required")
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            raise InvalidInputError("Invalid email address", details=str(e)) from e

    async def register(self, raw_email: Optional[str], source: Optional[str] = None) -> RegistrationResult:
        email = self.normalize_email(raw_email)
        self._validate(email)
        if source is not None:
            source = source.strip()[:MAX_SOURCE_LENGTH] or None

        existing = await self.store.find_by_email(email)
        if existing:
            audit("WAITLIST_DUPLICATE", email=email)
            raise DuplicateEntryError(f"{email} is already on the waitlist")

        entry_id = await self.store.insert(NewEntry(email=email, source=source))
        audit("WAITLIST_REGISTERED", email=email, entry_id=str(entry_id), source=source)

        # Persisted from here on; the send can only be logged, never fail the call
        task = self.dispatcher.dispatch(email)
        if self.await_delivery:
            await asyncio.wait({task})

        return RegistrationResult(email=email, entry_id=entry_id)

    async def list_all(self) -> List[Entry]:
        return await self.store.list_all()

    async def delete_by_email(self, raw_email: Optional[str]) -> DeletionReport:
        email = self.normalize_email(raw_email)
        matches = await self.store.find_by_email(email)
        if not matches:
            raise NotFoundError(f"{email} is not on the waitlist")
        return await self._delete_entries(matches, email=email)

    async def delete_all(self) -> DeletionReport:
        entries = await self.store.list_all()
        if not entries:
            raise NotFoundError("The waitlist is empty")
        return await self._delete_entries(entries)

    async def _delete_entries(self, entries: List[Entry], email: Optional[str] = None) -> DeletionReport:
        """Delete each entry independently and concurrently; no rollback."""
        results = await asyncio.gather(
            *(self.store.delete_by_id(entry.id) for entry in entries),
            return_exceptions=True,
        )

        outcomes: List[DeletionOutcome] = []
        for entry, result in zip(entries, results):
            if isinstance(result, BaseException):
                error = str(result) or type(result).__name__
                outcomes.append(DeletionOutcome(entry_id=entry.id, removed=False, error=error))
            else:
                # False: the entry vanished between our read and the delete
                outcomes.append(DeletionOutcome(entry_id=entry.id, removed=bool(result)))

        removed = sum(1 for o in outcomes if o.removed)
        failures = [o for o in outcomes if o.error is not None]
        if failures:
            scope = "email" if email else "all"
            logger.error(f"Waitlist deletion ({scope}) failed for {len(failures)} of {len(entries)} entries")
            audit("WAITLIST_DELETE_FAILED", email=email, scope=scope, removed=removed, failed=len(failures))
            raise PartialDeletionFailureError(
                f"{len(failures)} of {len(entries)} deletions failed",
                removed=removed,
                failures=[f"{o.entry_id}: {o.error}" for o in failures],
            )

        audit("WAITLIST_DELETED", email=email, scope="email" if email else "all", removed=removed)
        return DeletionReport(removed=removed, outcomes=outcomes)
