"""Tests for stored platform API keys."""

import pytest

from thinkvoice_console.common.config import ConsoleSettings
from thinkvoice_console.common.database import DatabaseManager
from thinkvoice_console.common.exceptions import UpstreamApiError
from thinkvoice_console.voice.keys import BOLNA_API_KEY, ApiKeyStore, mask_key


@pytest.fixture
async def db():
    manager = DatabaseManager(ConsoleSettings(database_url="sqlite+aiosqlite://"))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def store():
    return ApiKeyStore()


class TestApiKeyStore:
    async def test_set_then_update(self, db, store):
        async with db.get_session() as session:
            first = await store.set(session, BOLNA_API_KEY, "key-one")
            first_updated = first.updated_at
        async with db.get_session() as session:
            second = await store.set(session, BOLNA_API_KEY, "key-two")
            assert second.id == first.id
            assert second.updated_at >= first_updated
        async with db.get_session() as session:
            assert await store.get(session, BOLNA_API_KEY) == "key-two"
            assert [k.key for k in await store.list_keys(session)] == [BOLNA_API_KEY]

    async def test_stored_key_wins_over_setting(self, db, store):
        settings = ConsoleSettings(database_url="sqlite+aiosqlite://", bolna_api_key="from-env")
        async with db.get_session() as session:
            assert await store.resolve_api_key(session, settings) == "from-env"
            await store.set(session, BOLNA_API_KEY, "from-db")
            assert await store.resolve_api_key(session, settings) == "from-db"

    async def test_missing_key(self, db, store):
        settings = ConsoleSettings(database_url="sqlite+aiosqlite://", bolna_api_key="")
        with pytest.raises(UpstreamApiError) as exc:
            async with db.get_session() as session:
                await store.resolve_api_key(session, settings)
        assert exc.value.status == 401
        assert exc.value.message == "Bolna API Key not configured"


class TestMaskKey:
    def test_long(self):
        assert mask_key("abcdefghijkl") == "abcd...ijkl"

    def test_short(self):
        assert mask_key("abc") == "***"
