from pathlib import Path
from functools import lru_cache

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from pydantic import SecretStr


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # API Keys
    openrouter_api_key: SecretStr = SecretStr("")

    # OpenRouter
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    app_title: str = "RouterChat"

    # Database
    database_url: str = "./data/routerchat.db"

    # Server
    backend_port: int = 8000
    log_level: str = "INFO"

    # Deployment
    allowed_origins: str = ""

    # Loaded from YAML
    yaml_config: dict = {}

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        yaml_path = Path(__file__).parent.parent / "config" / "settings.yaml"
        if yaml_path.exists():
            with open(yaml_path, "r", encoding="utf-8") as f:
                self.yaml_config = yaml.safe_load(f) or {}

    @property
    def reconciliation_config(self) -> dict:
        return self.yaml_config.get("reconciliation", {})

    @property
    def http_config(self) -> dict:
        return self.yaml_config.get("http", {})

    @property
    def request_timeout(self) -> float:
        return float(self.http_config.get("request_timeout", 30.0))

    @property
    def connect_timeout(self) -> float:
        return float(self.http_config.get("connect_timeout", 10.0))

    @property
    def preferred_default_model(self) -> str:
        return self.yaml_config.get("models", {}).get("preferred_default", "gpt-3.5-turbo")


@lru_cache
def get_settings() -> Settings:
    return Settings()
