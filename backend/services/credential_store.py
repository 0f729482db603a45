from typing import Optional

from backend.config import Settings
from backend.database import get_db

OPENROUTER_KEY = "openrouter_api_key"


class CredentialStore:
    """The OpenRouter API key, persisted across restarts.

    A key from ``OPENROUTER_API_KEY`` in the environment is used until one
    is stored explicitly.
    """

    def __init__(self, settings: Settings):
        self._env_key = settings.openrouter_api_key.get_secret_value()

    async def get(self) -> Optional[str]:
        async with get_db() as db:
            cursor = await db.execute(
                "SELECT value FROM credentials WHERE name = ?", (OPENROUTER_KEY,)
            )
            row = await cursor.fetchone()
        if row:
            return row["value"]
        return self._env_key or None

    async def set(self, api_key: str):
        async with get_db() as db:
            await db.execute(
                """INSERT INTO credentials (name, value) VALUES (?, ?)
                   ON CONFLICT(name) DO UPDATE SET
                   value = excluded.value, updated_at = datetime('now')""",
                (OPENROUTER_KEY, api_key),
            )
            await db.commit()

    async def clear(self):
        """Remove the stored key. The environment fallback is dropped too."""
        self._env_key = ""
        async with get_db() as db:
            await db.execute("DELETE FROM credentials WHERE name = ?", (OPENROUTER_KEY,))
            await db.commit()
