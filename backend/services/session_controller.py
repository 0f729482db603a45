import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

import httpx

from backend.exceptions import (
    CompletionError,
    MissingCredentialError,
    MissingModelError,
    SessionBusyError,
)
from backend.models.database_models import SavedChat
from backend.models.events import (
    CorrelationCaptured,
    MessageAppended,
    StreamFailed,
    TextUpdated,
)
from backend.models.schemas import ChatInfo, ChatMessage, Sender
from backend.services.delta_accumulator import DeltaAccumulator, is_terminal_fragment
from backend.services.frame_decoder import FrameDecoder
from backend.services.model_catalog import ModelCatalog
from backend.services.openrouter_client import OpenRouterClient
from backend.services.retry import RetryPolicy
from backend.services.transcript import Transcript
from backend.services.usage_reconciler import UsageReconciler

logger = logging.getLogger(__name__)


@dataclass
class StreamState:
    """Per-request reader state, discarded when the stream ends."""
    decoder: FrameDecoder = field(default_factory=FrameDecoder)
    accumulator: DeltaAccumulator = field(default_factory=DeltaAccumulator)
    failed: bool = False


class SessionController:
    """One conversation with one in-flight turn at a time.

    A turn runs in two phases: the completion stream, which writes live
    text into a placeholder entry, then usage reconciliation, which
    finalizes that entry with cost and token counts. Both phases only
    touch the transcript through typed events.

    Args:
        client: OpenRouter API wrapper.
        catalog: Model listing used for display names and chat loading.
        retry_policy: Budget for the usage poll.
        sleep: Awaitable used for reconciliation backoff.
    """

    def __init__(
        self,
        client: OpenRouterClient,
        catalog: Optional[ModelCatalog] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._catalog = catalog
        self.transcript = Transcript()
        self.reconciler = UsageReconciler(
            client, self.transcript.apply, policy=retry_policy, sleep=sleep,
        )
        self.api_key: Optional[str] = None
        self.model_id = ""
        self.provider = ""
        self.system_prompt = ""
        self.chat_info = ChatInfo()
        self.saved_chat_id: Optional[int] = None
        self.is_loading = False
        self.is_reconciling = False

    @property
    def busy(self) -> bool:
        return self.is_loading or self.is_reconciling

    @property
    def total_cost(self) -> float:
        return self.transcript.total_cost

    def _display_name(self, model_id: str) -> str:
        if self._catalog is not None:
            return self._catalog.display_name(model_id)
        return model_id.split("/")[-1] if model_id else ""

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    def ensure_ready(self) -> None:
        """Raise if a turn cannot start right now."""
        if self.busy:
            raise SessionBusyError("A response is still in progress")
        if not self.api_key:
            raise MissingCredentialError()
        if not self.model_id:
            raise MissingModelError()

    def request_messages(self) -> list[dict]:
        """History sent with a completion request, system prompt first."""
        messages = []
        if self.system_prompt.strip():
            messages.append({"role": "system", "content": self.system_prompt})
        messages.extend(m.to_api_message() for m in self.transcript.messages)
        return messages

    async def send_message(self, user_text: str) -> None:
        if not user_text.strip():
            logger.info("Ignoring empty message")
            return
        self.ensure_ready()
        api_key, model_id = self.api_key, self.model_id

        if self.saved_chat_id is None and len(self.transcript) == 0:
            self.chat_info = ChatInfo(
                model=self._display_name(model_id), provider=self.provider,
            )

        self.is_loading = True
        try:
            self.transcript.apply(MessageAppended(message=ChatMessage(
                id=uuid.uuid4().hex, sender=Sender.USER, text=user_text,
            )))
            history = self.request_messages()

            placeholder_id = str(time.time_ns())
            self.transcript.apply(MessageAppended(message=ChatMessage(
                id=placeholder_id, sender=Sender.ASSISTANT,
            )))
            state = await self._stream_reply(api_key, model_id, history, placeholder_id)
        finally:
            self.is_loading = False

        if state.failed:
            return

        self.is_reconciling = True
        try:
            await self.reconciler.reconcile(
                state.accumulator.correlation_id,
                placeholder_id,
                state.accumulator.text,
                api_key=api_key,
            )
        finally:
            self.is_reconciling = False

    async def _stream_reply(
        self, api_key: str, model_id: str, history: list[dict], placeholder_id: str,
    ) -> StreamState:
        state = StreamState()
        logger.info(f"Streaming {model_id} reply into {placeholder_id}")
        try:
            async with self._client.stream_chat(api_key, model_id, history) as response:
                async for chunk in response.aiter_bytes():
                    self._process_chunk(state, chunk, placeholder_id)
                    if state.accumulator.done:
                        break
        except (CompletionError, httpx.HTTPError) as e:
            logger.error("Error sending message: %s", e)
            state.failed = True
            self.transcript.apply(StreamFailed(
                placeholder_id=placeholder_id, error=str(e) or type(e).__name__,
            ))
        finally:
            state.decoder.close()
        return state

    def _process_chunk(self, state: StreamState, chunk: bytes, placeholder_id: str) -> None:
        for line in state.decoder.feed(chunk):
            update = state.accumulator.consume(line)
            if update.correlation_id is not None:
                self.transcript.apply(CorrelationCaptured(
                    placeholder_id=placeholder_id,
                    correlation_id=update.correlation_id,
                ))
            if update.text is not None:
                self.transcript.apply(TextUpdated(
                    placeholder_id=placeholder_id, text=update.text,
                ))
            if update.done:
                return
        if is_terminal_fragment(state.decoder.buffer):
            state.accumulator.finish()

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    def _ensure_idle(self) -> None:
        if self.busy:
            raise SessionBusyError("A response is still in progress")

    def set_credential(self, api_key: str) -> None:
        self.api_key = api_key

    def clear_credential(self) -> None:
        """Forget the key and everything that was selected with it.

        While a turn is in flight only the key is dropped; the turn keeps
        the key it started with and the session is left for it to finish.
        """
        self.api_key = None
        if self.busy:
            return
        self.model_id = ""
        self.provider = ""
        self.transcript.replace([])
        self.system_prompt = ""
        self.saved_chat_id = None
        self.chat_info = ChatInfo()

    def select_model(self, model_id: str, provider: str = "") -> None:
        self.model_id = model_id
        self.provider = provider or ModelCatalog.provider_of(model_id)
        if len(self.transcript) == 0:
            self.chat_info = ChatInfo(
                model=self._display_name(model_id), provider=self.provider,
            )

    def reset(self) -> None:
        """Start a new, unsaved chat."""
        self._ensure_idle()
        self.transcript.replace([])
        self.system_prompt = ""
        self.saved_chat_id = None
        self.chat_info = ChatInfo(
            model=self._display_name(self.model_id), provider=self.provider,
        )

    def load(self, chat: SavedChat) -> None:
        """Replace the session with a saved chat."""
        self._ensure_idle()
        self.transcript.replace(ChatMessage.model_validate(m) for m in chat.messages)
        self.system_prompt = chat.system_prompt or ""
        self.saved_chat_id = chat.id

        loaded_model = chat.selected_model_id
        loaded_provider = chat.selected_provider_id
        model_exists = self._catalog is not None and self._catalog.has_model(loaded_model)

        if loaded_model and loaded_provider and model_exists:
            self.model_id = loaded_model
            self.provider = loaded_provider
            self.chat_info = ChatInfo(
                model=chat.model or self._display_name(loaded_model),
                provider=chat.provider or loaded_provider,
            )
        elif loaded_model and not model_exists:
            logger.warning(f"Loaded model {loaded_model} is no longer available.")
            self.model_id = ""
            self.provider = ""
            self.chat_info = ChatInfo(
                model=chat.model or "N/A", provider=chat.provider or "N/A",
            )
        else:
            self.chat_info = ChatInfo(
                model=self._display_name(self.model_id), provider=self.provider,
            )

    def forget_saved_chat(self, chat_id: int) -> None:
        """Called when a saved chat is deleted; resets if it was loaded."""
        if self.saved_chat_id == chat_id:
            self.reset()

    def snapshot(self, name: str = "") -> SavedChat:
        """Current session as a saved-chat record."""
        if not name.strip():
            if self.chat_info.model and self.chat_info.provider:
                name = f"{self.chat_info.provider}/{self.chat_info.model} Chat"
            else:
                name = f"Chat {datetime.now():%Y-%m-%d %H:%M:%S}"
        return SavedChat(
            id=self.saved_chat_id,
            name=name.strip(),
            messages=[m.model_dump(mode="json") for m in self.transcript.messages],
            system_prompt=self.system_prompt,
            model=self.chat_info.model,
            provider=self.chat_info.provider,
            total_cost=self.total_cost,
            timestamp=int(time.time() * 1000),
            selected_model_id=self.model_id,
            selected_provider_id=self.provider,
        )
