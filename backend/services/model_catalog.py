import logging
from typing import Optional

from backend.config import Settings
from backend.models.schemas import ModelInfo
from backend.services.openrouter_client import OpenRouterClient

logger = logging.getLogger(__name__)


def price_per_million(unit_price: float) -> float:
    """OpenRouter lists per-token prices; show them per 1M tokens."""
    return round(unit_price * 1_000_000, 6)


class ModelCatalog:
    """Models available to the current API key, grouped by provider prefix."""

    def __init__(self, settings: Settings, client: OpenRouterClient):
        self._settings = settings
        self._client = client
        self._models: dict[str, ModelInfo] = {}

    @property
    def models(self) -> list[ModelInfo]:
        return list(self._models.values())

    async def refresh(self, api_key: str) -> list[ModelInfo]:
        """Reload the listing. InvalidCredentialError propagates to the caller."""
        models = await self._client.list_models(api_key)
        self._models = {m.id: m for m in models}
        logger.info(f"Loaded {len(self._models)} models from OpenRouter")
        return self.models

    def clear(self) -> None:
        self._models = {}

    def has_model(self, model_id: str) -> bool:
        return model_id in self._models

    def get(self, model_id: str) -> Optional[ModelInfo]:
        return self._models.get(model_id)

    @staticmethod
    def provider_of(model_id: str) -> str:
        return model_id.split("/")[0] if model_id else ""

    def providers(self) -> list[str]:
        return sorted({self.provider_of(m) for m in self._models})

    def models_for_provider(self, provider: str) -> list[ModelInfo]:
        return [m for m in self._models.values() if m.id.startswith(provider + "/")]

    def display_name(self, model_id: str) -> str:
        if not model_id:
            return ""
        model = self._models.get(model_id)
        if model:
            return model.name or model.id
        return model_id.split("/")[-1]

    def default_model(self) -> Optional[str]:
        preferred = self._settings.preferred_default_model
        for model_id in self._models:
            if preferred and preferred in model_id:
                return model_id
        return next(iter(self._models), None)
