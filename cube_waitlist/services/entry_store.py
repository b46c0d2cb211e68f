"""Entry store adapters.

The waitlist service only ever talks to an ``EntryStore``: find by email,
insert, list, delete by id. Each call is a suspension point for the calling
request task; none of them hold locks across calls, so a find followed by an
insert is not atomic.
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cube_waitlist.core.database import create_db_engine, create_session_factory, init_db
from cube_waitlist.core.exceptions import DuplicateEntryError, StoreUnavailableError
from cube_waitlist.models.waitlist_entry import WaitlistEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entry:
    """A stored waitlist entry as seen by the service layer."""
    id: uuid.UUID
    email: str
    source: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewEntry:
    email: str
    source: Optional[str] = None


class EntryStore(ABC):
    @abstractmethod
    async def find_by_email(self, email: str) -> List[Entry]:
        """Return every entry whose email equals ``email`` (possibly empty)."""

    @abstractmethod
    async def insert(self, entry: NewEntry) -> uuid.UUID:
        """Persist ``entry`` and return the store-assigned id."""

    @abstractmethod
    async def list_all(self) -> List[Entry]:
        ...

    @abstractmethod
    async def delete_by_id(self, entry_id: uuid.UUID) -> bool:
        """Remove one entry. False means it was already gone."""

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass


def _to_entry(row: WaitlistEntry) -> Entry:
    return Entry(id=row.id, email=row.email, source=row.source, created_at=row.created_at)


class SqlAlchemyEntryStore(EntryStore):
    """Entry store over a SQLAlchemy session factory.

    Every call opens its own short-lived session and runs in the threadpool,
    so concurrent requests never share a session.
    """

    def __init__(self, session_factory: Callable[[], Session], engine=None, unique_index: bool = False):
        self._session_factory = session_factory
        self._engine = engine
        self._unique_index = unique_index

    async def find_by_email(self, email: str) -> List[Entry]:
        return await run_in_threadpool(self._find_by_email, email)

    async def insert(self, entry: NewEntry) -> uuid.UUID:
        return await run_in_threadpool(self._insert, entry)

    async def list_all(self) -> List[Entry]:
        return await run_in_threadpool(self._list_all)

    async def delete_by_id(self, entry_id: uuid.UUID) -> bool:
        return await run_in_threadpool(self._delete_by_id, entry_id)

    async def initialize(self) -> None:
        if self._engine is not None:
            await run_in_threadpool(init_db, self._engine, self._unique_index)

    async def close(self) -> None:
        if self._engine is not None:
            await run_in_threadpool(self._engine.dispose)

    def _find_by_email(self, email: str) -> List[Entry]:
        try:
            with self._session_factory() as db:
                rows = db.query(WaitlistEntry).filter(WaitlistEntry.email == email).all()
                return [_to_entry(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error("Waitlist lookup failed: %s", e)
            raise StoreUnavailableError("Waitlist store query failed", details=str(e)) from e

    def _insert(self, entry: NewEntry) -> uuid.UUID:
        try:
            with self._session_factory() as db:
                row = WaitlistEntry(email=entry.email, source=entry.source)
                db.add(row)
                try:
                    db.commit()
                except IntegrityError as e:
                    db.rollback()
                    # Only reachable when the unique email index is installed
                    raise DuplicateEntryError(f"{entry.email} is already on the waitlist") from e
                return row.id
        except DuplicateEntryError:
            raise
        except SQLAlchemyError as e:
            logger.error("Waitlist insert failed: %s", e)
            raise StoreUnavailableError("Waitlist store insert failed", details=str(e)) from e

    def _list_all(self) -> List[Entry]:
        try:
            with self._session_factory() as db:
                return [_to_entry(row) for row in db.query(WaitlistEntry).all()]
        except SQLAlchemyError as e:
            logger.error("Waitlist listing failed: %s", e)
            raise StoreUnavailableError("Waitlist store query failed", details=str(e)) from e

    def _delete_by_id(self, entry_id: uuid.UUID) -> bool:
        try:
            with self._session_factory() as db:
                removed = db.query(WaitlistEntry).filter(WaitlistEntry.id == entry_id).delete()
                db.commit()
                return removed > 0
        except SQLAlchemyError as e:
            logger.error("Waitlist delete of %s failed: %s", entry_id, e)
            raise StoreUnavailableError("Waitlist store delete failed", details=str(e)) from e


class InMemoryEntryStore(EntryStore):
    """Process-local store used with ``DATABASE_URL=memory://``.

    Yields to the event loop on every call, like a real round trip, so the
    check-then-act window between find and insert stays open.
    """

    def __init__(self):
        self._rows: Dict[uuid.UUID, Entry] = {}

    async def find_by_email(self, email: str) -> List[Entry]:
        await asyncio.sleep(0)
        return [row for row in self._rows.values() if row.email == email]

    async def insert(self, entry: NewEntry) -> uuid.UUID:
        await asyncio.sleep(0)
        entry_id = uuid.uuid4()
        self._rows[entry_id] = Entry(
            id=entry_id,
            email=entry.email,
            source=entry.source,
            created_at=datetime.now(timezone.utc),
        )
        return entry_id

    async def list_all(self) -> List[Entry]:
        await asyncio.sleep(0)
        return list(self._rows.values())

    async def delete_by_id(self, entry_id: uuid.UUID) -> bool:
        await asyncio.sleep(0)
        return self._rows.pop(entry_id, None) is not None


def build_entry_store(settings) -> EntryStore:
    """Construct the store named by ``settings.DATABASE_URL``."""
    if settings.DATABASE_URL.startswith("memory://"):
        return InMemoryEntryStore()

    engine = create_db_engine(settings.DATABASE_URL)
    return SqlAlchemyEntryStore(
        create_session_factory(engine),
        engine=engine,
        unique_index=settings.WAITLIST_UNIQUE_INDEX,
    )
