import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from cube_waitlist.main import create_app
from cube_waitlist.services.entry_store import NewEntry
from fakes import FailingNotifier, make_settings

WAITLIST_URL = "/api/v1/waitlist"


class DenyingLimiter:
    def allow_for_client(self, *args, **kwargs):
        return False

    def close(self):
        pass


class UnreachableLimiter:
    def allow_for_client(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    def close(self):
        pass


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_join_waitlist(client, app, notifier):
    r = await client.post(WAITLIST_URL, json={"email": " fan@example.com "})
    assert r.status_code == 201
    assert r.json()["email"] == "fan@example.com"

    await app.state.dispatcher.drain()
    assert notifier.sent == ["fan@example.com"]

    r = await client.get(WAITLIST_URL)
    assert r.status_code == 200
    body = r.json()
    assert [e["email"] for e in body] == ["fan@example.com"]
    assert body[0]["id"]


@pytest.mark.asyncio
async def test_join_waitlist_duplicate(client):
    r = await client.post(WAITLIST_URL, json={"email": "fan@example.com"})
    assert r.status_code == 201
    r = await client.post(WAITLIST_URL, json={"email": "fan@example.com"})
    assert r.status_code == 409

    r = await client.get(WAITLIST_URL)
    assert len(r.json()) == 1


@pytest.mark.asyncio
async def test_join_waitlist_invalid_email(client, store):
    r = await client.post(WAITLIST_URL, json={"email": "not-an-email"})
    assert r.status_code == 400
    assert store.total_calls == 0


@pytest.mark.asyncio
async def test_join_waitlist_missing_email(client):
    r = await client.post(WAITLIST_URL, json={"source": "twitter"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_join_waitlist_store_down(client, store):
    store.fail_on.add("find")
    r = await client.post(WAITLIST_URL, json={"email": "fan@example.com"})
    assert r.status_code == 503


@pytest.mark.asyncio
async def test_join_waitlist_survives_notifier_failure(app_settings, store):
    failing = FailingNotifier()
    app = create_app(app_settings, store=store, notifier=failing)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.post(WAITLIST_URL, json={"email": "fan@example.com"})
        await app.state.dispatcher.drain()

    assert r.status_code == 201
    assert failing.attempts == ["fan@example.com"]
    assert len(await store.find_by_email("fan@example.com")) == 1


@pytest.mark.asyncio
async def test_list_waitlist_store_down(client, store):
    store.fail_on.add("list")
    r = await client.get(WAITLIST_URL)
    assert r.status_code == 503


@pytest.mark.asyncio
async def test_remove_from_waitlist(client, store):
    await store.insert(NewEntry(email="x@example.com"))
    await store.insert(NewEntry(email="x@example.com"))

    r = await client.delete(f"{WAITLIST_URL}/x@example.com")
    assert r.status_code == 200
    assert r.json() == {"removed": 2}
    assert await store.list_all() == []


@pytest.mark.asyncio
async def test_remove_from_waitlist_not_found(client, store):
    await store.insert(NewEntry(email="other@example.com"))

    r = await client.delete(f"{WAITLIST_URL}/absent@example.com")
    assert r.status_code == 404
    assert len(await store.list_all()) == 1


@pytest.mark.asyncio
async def test_clear_waitlist(client, store):
    for i in range(3):
        await store.insert(NewEntry(email=f"user{i}@example.com"))

    r = await client.delete(WAITLIST_URL)
    assert r.status_code == 200
    assert r.json() == {"removed": 3}

    r = await client.get(WAITLIST_URL)
    assert r.json() == []


@pytest.mark.asyncio
async def test_clear_empty_waitlist(client):
    r = await client.delete(WAITLIST_URL)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_clear_waitlist_partial_failure(client, store):
    ids = [await store.insert(NewEntry(email=f"user{i}@example.com")) for i in range(3)]
    store.fail_delete_ids.add(ids[0])

    r = await client.delete(WAITLIST_URL)
    assert r.status_code == 500
    detail = r.json()["detail"]
    assert detail["removed"] == 2
    assert len(detail["failures"]) == 1


@pytest.mark.asyncio
async def test_admin_token_guards_listing_and_deletion(store, notifier):
    app = create_app(make_settings(ADMIN_TOKEN="s3cret"), store=store, notifier=notifier)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.post(WAITLIST_URL, json={"email": "fan@example.com"})
        assert r.status_code == 201

        assert (await ac.get(WAITLIST_URL)).status_code == 403
        assert (await ac.get(WAITLIST_URL, headers={"X-Admin-Token": "nope"})).status_code == 403
        assert (await ac.delete(WAITLIST_URL)).status_code == 403
        r = await ac.get(WAITLIST_URL, headers={"X-Admin-Token": "caf\u00e9".encode("latin-1")})
        assert r.status_code == 403

        r = await ac.get(WAITLIST_URL, headers={"X-Admin-Token": "s3cret"})
        assert r.status_code == 200
        assert len(r.json()) == 1
    await app.state.dispatcher.drain()


@pytest.mark.asyncio
async def test_rate_limit_rejects_excess_requests(store, notifier):
    app = create_app(
        make_settings(RATE_LIMIT_ENABLED=True),
        store=store,
        notifier=notifier,
        rate_limiter=DenyingLimiter(),
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.post(WAITLIST_URL, json={"email": "fan@example.com"})

    assert r.status_code == 429
    assert store.total_calls == 0


@pytest.mark.asyncio
async def test_rate_limit_allows_when_redis_is_down(store, notifier):
    app = create_app(
        make_settings(RATE_LIMIT_ENABLED=True),
        store=store,
        notifier=notifier,
        rate_limiter=UnreachableLimiter(),
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.post(WAITLIST_URL, json={"email": "fan@example.com"})
    await app.state.dispatcher.drain()

    assert r.status_code == 201


@pytest.mark.asyncio
async def test_lifespan_initializes_and_drains(tmp_path, notifier):
    settings = make_settings(DATABASE_URL=f"sqlite:///{tmp_path / 'waitlist.db'}")
    app = create_app(settings, notifier=notifier)

    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            r = await ac.post(WAITLIST_URL, json={"email": "fan@example.com"})
            assert r.status_code == 201
            r = await ac.get(WAITLIST_URL)
            assert [e["email"] for e in r.json()] == ["fan@example.com"]

    assert notifier.sent == ["fan@example.com"]
