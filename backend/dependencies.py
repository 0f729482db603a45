from functools import lru_cache

from backend.config import get_settings
from backend.services.chat_store import ChatStore
from backend.services.cost_tracker import CostTracker
from backend.services.credential_store import CredentialStore
from backend.services.model_catalog import ModelCatalog
from backend.services.openrouter_client import OpenRouterClient
from backend.services.retry import RetryPolicy
from backend.services.session_controller import SessionController


def get_chat_store() -> ChatStore:
    return ChatStore()


@lru_cache
def get_credential_store() -> CredentialStore:
    return CredentialStore(get_settings())


@lru_cache
def get_openrouter_client() -> OpenRouterClient:
    return OpenRouterClient(get_settings())


@lru_cache
def get_model_catalog() -> ModelCatalog:
    return ModelCatalog(get_settings(), get_openrouter_client())


@lru_cache
def get_session_controller() -> SessionController:
    """The single conversation session served by this process."""
    settings = get_settings()
    return SessionController(
        get_openrouter_client(),
        get_model_catalog(),
        retry_policy=RetryPolicy.from_settings(settings),
    )


def get_cost_tracker() -> CostTracker:
    return CostTracker()
