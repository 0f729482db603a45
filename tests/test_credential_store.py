import pytest

from backend.services.credential_store import CredentialStore


@pytest.fixture
def store(initialized_db, test_settings):
    return CredentialStore(test_settings)


class TestCredentialStore:
    @pytest.mark.asyncio
    async def test_falls_back_to_environment_key(self, store):
        assert await store.get() == "sk-or-test-fake"

    @pytest.mark.asyncio
    async def test_stored_key_wins(self, store):
        await store.set("sk-or-stored")
        assert await store.get() == "sk-or-stored"
        await store.set("sk-or-replaced")
        assert await store.get() == "sk-or-replaced"

    @pytest.mark.asyncio
    async def test_clear_drops_both(self, store):
        await store.set("sk-or-stored")
        await store.clear()
        assert await store.get() is None
