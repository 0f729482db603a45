import json
import os

import httpx
from httpx_sse import connect_sse

BACKEND_URL = os.environ.get("BACKEND_URL", "http://127.0.0.1:8000")


def error_detail(exc: Exception) -> str:
    """Best human-readable message for a failed backend call."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            return exc.response.json().get("detail", str(exc))
        except ValueError:
            return exc.response.text or str(exc)
    return str(exc)


class APIClient:
    def __init__(self, base_url: str = BACKEND_URL):
        self.base_url = base_url

    # --- Streaming chat (synchronous for Streamlit) ---

    def stream_chat(self, message: str):
        """Synchronous SSE streaming for use in Streamlit.

        Yields ``{"event": kind, "data": dict}`` for every transcript
        update until the backend sends ``done`` or ``error``.
        """
        # No read timeout: a turn lasts as long as the model streams plus
        # the usage poll.
        timeout = httpx.Timeout(None, connect=10.0)
        with httpx.Client(timeout=timeout) as client:
            with connect_sse(
                client, "POST", f"{self.base_url}/chat/completions",
                json={"message": message},
            ) as event_source:
                if event_source.response.is_error:
                    event_source.response.read()
                    event_source.response.raise_for_status()
                for sse in event_source.iter_sse():
                    try:
                        data = json.loads(sse.data) if sse.data else {}
                    except json.JSONDecodeError:
                        data = {"raw": sse.data}
                    yield {
                        "event": sse.event,
                        "data": data,
                    }

    # --- Session ---

    def get_session(self) -> dict:
        with httpx.Client(timeout=10.0) as client:
            r = client.get(f"{self.base_url}/chat/session")
            r.raise_for_status()
            return r.json()

    def new_session(self) -> dict:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{self.base_url}/chat/session/new")
            r.raise_for_status()
            return r.json()

    def update_system_prompt(self, system_prompt: str) -> dict:
        with httpx.Client(timeout=10.0) as client:
            r = client.put(
                f"{self.base_url}/chat/session/system-prompt",
                json={"system_prompt": system_prompt},
            )
            r.raise_for_status()
            return r.json()

    def select_model(self, model_id: str, provider: str = "") -> dict:
        with httpx.Client(timeout=10.0) as client:
            r = client.put(
                f"{self.base_url}/chat/session/model",
                json={"model_id": model_id, "provider": provider},
            )
            r.raise_for_status()
            return r.json()

    # --- Credentials and models ---

    def has_api_key(self) -> bool:
        with httpx.Client(timeout=10.0) as client:
            r = client.get(f"{self.base_url}/credentials")
            r.raise_for_status()
            return r.json()["has_api_key"]

    def set_api_key(self, api_key: str):
        with httpx.Client(timeout=10.0) as client:
            r = client.put(f"{self.base_url}/credentials", json={"api_key": api_key})
            r.raise_for_status()

    def clear_api_key(self):
        with httpx.Client(timeout=10.0) as client:
            r = client.delete(f"{self.base_url}/credentials")
            r.raise_for_status()

    def list_models(self, refresh: bool = False) -> dict:
        with httpx.Client(timeout=30.0) as client:
            r = client.get(f"{self.base_url}/models", params={"refresh": refresh})
            r.raise_for_status()
            return r.json()

    # --- Saved chats ---

    def list_chats(self) -> list[dict]:
        with httpx.Client(timeout=10.0) as client:
            r = client.get(f"{self.base_url}/chats")
            r.raise_for_status()
            return r.json()["chats"]

    def save_chat(self, name: str = "") -> dict:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{self.base_url}/chats", json={"name": name})
            r.raise_for_status()
            return r.json()

    def load_chat(self, chat_id: int) -> dict:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{self.base_url}/chats/{chat_id}/load")
            r.raise_for_status()
            return r.json()

    def delete_chat(self, chat_id: int):
        with httpx.Client(timeout=10.0) as client:
            r = client.delete(f"{self.base_url}/chats/{chat_id}")
            r.raise_for_status()

    # --- Costs / health ---

    def get_cost_summary(self) -> dict:
        with httpx.Client(timeout=10.0) as client:
            r = client.get(f"{self.base_url}/costs/summary")
            r.raise_for_status()
            return r.json()

    def health_check(self) -> dict:
        with httpx.Client(timeout=5.0) as client:
            r = client.get(f"{self.base_url}/health")
            r.raise_for_status()
            return r.json()
