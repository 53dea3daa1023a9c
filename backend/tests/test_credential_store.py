from datetime import UTC, datetime

import pytest
from conftest import USER_ID

from core.errors import CredentialNotFound, CredentialStoreError
from services import CredentialStore
from shared.models.credential import DiscordCredential

EXPIRES = datetime(2026, 1, 1, tzinfo=UTC)


class FakeConnection:
    def __init__(self, row=None, status="DELETE 1", error: Exception | None = None):
        self.row = row
        self.status = status
        self.error = error
        self.queries: list[tuple] = []

    async def fetchrow(self, query, *args):
        self.queries.append((query, args))
        if self.error:
            raise self.error
        return self.row

    async def execute(self, query, *args):
        self.queries.append((query, args))
        if self.error:
            raise self.error
        return self.status


class _Acquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc):
        return False


class FakePool:
    def __init__(self, conn: FakeConnection):
        self.conn = conn

    def acquire(self):
        return _Acquire(self.conn)


class FakeDatabaseManager:
    def __init__(self, conn: FakeConnection | None = None, connected: bool = True):
        self.pool = FakePool(conn or FakeConnection())
        self.is_connected = connected


def _row(**overrides) -> dict:
    row = {
        "user_id": USER_ID,
        "access_token": "a1",
        "refresh_token": "r1",
        "expires_at": EXPIRES,
        "created_at": EXPIRES,
        "updated_at": EXPIRES,
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_get_returns_credential():
    store = CredentialStore(FakeDatabaseManager(FakeConnection(row=_row())))

    credential = await store.get(USER_ID)

    assert credential.refresh_token == "r1"
    assert "r1" not in repr(credential)


@pytest.mark.asyncio
async def test_get_nothing_stored_is_not_found():
    store = CredentialStore(FakeDatabaseManager(FakeConnection(row=None)))

    with pytest.raises(CredentialNotFound):
        await store.get(USER_ID)


@pytest.mark.asyncio
async def test_database_not_ready():
    with pytest.raises(CredentialStoreError, match="not ready"):
        await CredentialStore(None).get(USER_ID)
    with pytest.raises(CredentialStoreError):
        await CredentialStore(FakeDatabaseManager(connected=False)).delete(USER_ID)


@pytest.mark.asyncio
async def test_read_failure_is_store_error_not_auth_error():
    store = CredentialStore(FakeDatabaseManager(FakeConnection(error=OSError("connection reset"))))

    with pytest.raises(CredentialStoreError) as exc_info:
        await store.get(USER_ID)
    assert not isinstance(exc_info.value, CredentialNotFound)


@pytest.mark.asyncio
async def test_put_upserts_and_returns_row():
    conn = FakeConnection(row=_row(access_token="a2", refresh_token="r2"))
    store = CredentialStore(FakeDatabaseManager(conn))

    stored = await store.put(DiscordCredential(USER_ID, "a2", "r2", EXPIRES))

    assert stored.access_token == "a2"
    query, args = conn.queries[0]
    assert "ON CONFLICT (user_id)" in query
    assert args == (USER_ID, "a2", "r2", EXPIRES)


@pytest.mark.asyncio
async def test_put_failure_is_store_error():
    store = CredentialStore(FakeDatabaseManager(FakeConnection(error=RuntimeError("boom"))))

    with pytest.raises(CredentialStoreError):
        await store.put(DiscordCredential(USER_ID, "a", "r", EXPIRES))


@pytest.mark.asyncio
@pytest.mark.parametrize("status,expected", [("DELETE 1", True), ("DELETE 0", False)])
async def test_delete_reports_removal(status, expected):
    store = CredentialStore(FakeDatabaseManager(FakeConnection(status=status)))

    assert await store.delete(USER_ID) is expected


def test_issue_uses_default_lifetime():
    now = datetime(2026, 1, 1, tzinfo=UTC)

    credential = DiscordCredential.issue(USER_ID, "a", "r", now=now)

    assert (credential.expires_at - now).total_seconds() == 604800
    assert not credential.is_expired(now)
    assert credential.is_expired(credential.expires_at)
