import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from backend.config import Settings
from backend.exceptions import CompletionError, InvalidCredentialError
from backend.models.schemas import ModelInfo
from backend.services.payloads import parse_model

logger = logging.getLogger(__name__)


class OpenRouterClient:
    """Thin async wrapper over the OpenRouter REST endpoints."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = settings.openrouter_base_url.rstrip("/")
        self._app_title = settings.app_title
        self._request_timeout = settings.request_timeout
        self._connect_timeout = settings.connect_timeout
        self._transport = transport

    def _client(self, timeout: httpx.Timeout | float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=self._transport,
            headers={"X-Title": self._app_title},
        )

    @staticmethod
    def _auth(api_key: str) -> dict:
        return {"Authorization": f"Bearer {api_key}"}

    # --- Completion stream ---

    @asynccontextmanager
    async def stream_chat(
        self, api_key: str, model: str, messages: list[dict]
    ) -> AsyncIterator[httpx.Response]:
        """Open a streamed completion; the response is released on exit.

        Only the connect phase is bounded; the stream itself may run as
        long as the model keeps producing.
        """
        timeout = httpx.Timeout(None, connect=self._connect_timeout)
        async with self._client(timeout) as client:
            async with client.stream(
                "POST",
                "/chat/completions",
                json={"model": model, "messages": messages, "stream": True},
                headers={**self._auth(api_key), "Content-Type": "application/json"},
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error("API Error Response (%d): %s", response.status_code, body[:500])
                    raise CompletionError(response.status_code, body)
                yield response

    # --- Generation stats ---

    async def get_generation(self, api_key: str, generation_id: str) -> httpx.Response:
        async with self._client(self._request_timeout) as client:
            return await client.get(
                "/generation",
                params={"id": generation_id},
                headers=self._auth(api_key),
            )

    # --- Model listing ---

    async def list_models(self, api_key: str) -> list[ModelInfo]:
        async with self._client(self._request_timeout) as client:
            r = await client.get("/models", headers=self._auth(api_key))
        if r.status_code in (401, 403):
            raise InvalidCredentialError(r.status_code)
        r.raise_for_status()
        data = r.json().get("data")
        if not isinstance(data, list):
            return []
        return [parse_model(m) for m in data if isinstance(m, dict) and m.get("id")]
