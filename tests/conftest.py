from typing import List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from cube_waitlist.main import create_app
from cube_waitlist.services.notification_dispatcher import NotificationDispatcher
from cube_waitlist.services.notifier import Notifier
from cube_waitlist.services.waitlist_service import WaitlistService
from fakes import FakeEntryStore, RecordingNotifier, make_settings


@pytest.fixture
def store():
    return FakeEntryStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def make_service(store):
    created: List[WaitlistService] = []

    def _make(notifier: Optional[Notifier] = None, **kwargs) -> WaitlistService:
        service = WaitlistService(store, NotificationDispatcher(notifier or RecordingNotifier()), **kwargs)
        created.append(service)
        return service

    yield _make
    for service in created:
        await service.dispatcher.drain()


@pytest_asyncio.fixture
async def service(make_service, notifier):
    return make_service(notifier)


@pytest.fixture
def app_settings():
    return make_settings()


@pytest.fixture
def app(app_settings, store, notifier):
    return create_app(app_settings, store=store, notifier=notifier)


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await app.state.dispatcher.drain()
