import pytest

from backend.exceptions import InvalidCredentialError
from backend.services.model_catalog import ModelCatalog, price_per_million


@pytest.fixture
def catalog(test_settings, openrouter_client):
    return ModelCatalog(test_settings, openrouter_client)


class TestModelCatalog:
    @pytest.mark.asyncio
    async def test_refresh_groups_by_provider(self, catalog):
        models = await catalog.refresh("sk-or-test")
        assert len(models) == 3
        assert catalog.providers() == ["anthropic", "openai"]
        assert [m.id for m in catalog.models_for_provider("openai")] == [
            "openai/gpt-4o", "openai/gpt-3.5-turbo",
        ]

    @pytest.mark.asyncio
    async def test_default_prefers_configured_model(self, catalog):
        await catalog.refresh("sk-or-test")
        assert catalog.default_model() == "openai/gpt-3.5-turbo"

    @pytest.mark.asyncio
    async def test_default_falls_back_to_first(self, catalog, fake_openrouter):
        fake_openrouter.models = [{"id": "mistral/tiny"}, {"id": "meta/llama"}]
        await catalog.refresh("sk-or-test")
        assert catalog.default_model() == "mistral/tiny"

    def test_default_when_empty(self, catalog):
        assert catalog.default_model() is None

    @pytest.mark.asyncio
    async def test_display_name(self, catalog):
        await catalog.refresh("sk-or-test")
        assert catalog.display_name("openai/gpt-4o") == "GPT-4o"
        assert catalog.display_name("unknown/some-model") == "some-model"
        assert catalog.display_name("") == ""

    @pytest.mark.asyncio
    async def test_rejected_key(self, catalog, fake_openrouter):
        fake_openrouter.models_status = 401
        with pytest.raises(InvalidCredentialError):
            await catalog.refresh("bad-key")
        assert catalog.models == []

    @pytest.mark.asyncio
    async def test_clear(self, catalog):
        await catalog.refresh("sk-or-test")
        catalog.clear()
        assert not catalog.has_model("openai/gpt-4o")

    def test_price_per_million(self):
        assert price_per_million(0.0000025) == 2.5
        assert ModelCatalog.provider_of("openai/gpt-4o") == "openai"
