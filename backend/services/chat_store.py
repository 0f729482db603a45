import json
from datetime import datetime
from typing import Optional

from backend.database import get_db
from backend.models.database_models import SavedChat


def _default_name(timestamp: int) -> str:
    return f"Chat {datetime.fromtimestamp(timestamp / 1000):%Y-%m-%d %H:%M:%S}"


def _row_to_chat(row) -> SavedChat:
    data = dict(row)
    data["messages"] = json.loads(data["messages"] or "[]")
    if not data["name"]:
        data["name"] = _default_name(data["timestamp"])
    return SavedChat(**data)


class ChatStore:
    """Saved chats as keyed records with autoincrement ids."""

    async def create_chat(self, chat: SavedChat) -> int:
        async with get_db() as db:
            cursor = await db.execute(
                """INSERT INTO chats
                   (name, messages, system_prompt, model, provider, total_cost,
                    timestamp, selected_model_id, selected_provider_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (chat.name, json.dumps(chat.messages), chat.system_prompt,
                 chat.model, chat.provider, chat.total_cost, chat.timestamp,
                 chat.selected_model_id, chat.selected_provider_id),
            )
            await db.commit()
            return cursor.lastrowid

    async def update_chat(self, chat_id: int, chat: SavedChat) -> bool:
        """Overwrite an existing record; False when the id is unknown."""
        async with get_db() as db:
            cursor = await db.execute(
                """UPDATE chats SET
                   name = ?, messages = ?, system_prompt = ?, model = ?,
                   provider = ?, total_cost = ?, timestamp = ?,
                   selected_model_id = ?, selected_provider_id = ?
                   WHERE id = ?""",
                (chat.name, json.dumps(chat.messages), chat.system_prompt,
                 chat.model, chat.provider, chat.total_cost, chat.timestamp,
                 chat.selected_model_id, chat.selected_provider_id, chat_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def get_chat(self, chat_id: int) -> Optional[SavedChat]:
        async with get_db() as db:
            cursor = await db.execute("SELECT * FROM chats WHERE id = ?", (chat_id,))
            row = await cursor.fetchone()
            return _row_to_chat(row) if row else None

    async def list_chats(self) -> list[SavedChat]:
        """All saved chats, newest first."""
        async with get_db() as db:
            cursor = await db.execute("SELECT * FROM chats ORDER BY timestamp DESC, id DESC")
            rows = await cursor.fetchall()
            return [_row_to_chat(row) for row in rows]

    async def delete_chat(self, chat_id: int) -> bool:
        async with get_db() as db:
            cursor = await db.execute("DELETE FROM chats WHERE id = ?", (chat_id,))
            await db.commit()
            return cursor.rowcount > 0

    async def count_chats(self) -> int:
        async with get_db() as db:
            cursor = await db.execute("SELECT COUNT(*) FROM chats")
            row = await cursor.fetchone()
            return row[0] if row else 0
