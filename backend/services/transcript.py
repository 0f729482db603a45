import logging
from typing import Callable, Iterable, Optional

from backend.models.events import (
    CorrelationCaptured,
    MessageAppended,
    StreamFailed,
    TextUpdated,
    TranscriptEvent,
    UsageFinalized,
    UsageUnavailable,
)
from backend.models.schemas import ChatMessage, Sender

logger = logging.getLogger(__name__)

Predicate = Callable[[ChatMessage], bool]
Patcher = Callable[[ChatMessage], ChatMessage]
Listener = Callable[[TranscriptEvent, list[ChatMessage]], None]


def matches_entry(placeholder_id: str, correlation_id: Optional[str] = None) -> Predicate:
    """Match an assistant entry by its placeholder id or its generation id.

    Between capture and finalize the entry may be keyed either way.
    """
    def predicate(msg: ChatMessage) -> bool:
        if msg.id == placeholder_id:
            return True
        if correlation_id is None:
            return False
        return msg.id == correlation_id or msg.correlation_id == correlation_id

    return predicate


def annotate_error(text: str, error: str) -> str:
    if text:
        return f"{text}\n\nError: {error}"
    return f"Error: {error}"


class Transcript:
    """Ordered message log for one conversation.

    Entries are only ever appended or patched in place; whole-transcript
    ``replace()`` is reserved for reset and load.
    """

    def __init__(self, messages: Optional[Iterable[ChatMessage]] = None):
        self._messages: list[ChatMessage] = list(messages or [])
        self._listeners: list[Listener] = []
        self._total_cost = 0.0
        self._recompute()

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def total_cost(self) -> float:
        return self._total_cost

    def __len__(self) -> int:
        return len(self._messages)

    def find(self, message_id: str) -> Optional[ChatMessage]:
        for msg in self._messages:
            if msg.id == message_id:
                return msg
        return None

    def append(self, message: ChatMessage) -> ChatMessage:
        self._messages.append(message)
        self._recompute()
        return message

    def update_where(self, predicate: Predicate, patcher: Patcher) -> list[ChatMessage]:
        """Patch every entry matching ``predicate``; return the patched entries."""
        touched = []
        for i, msg in enumerate(self._messages):
            if predicate(msg):
                patched = patcher(msg)
                self._messages[i] = patched
                touched.append(patched)
        if touched:
            self._recompute()
        return touched

    def replace(self, messages: Iterable[ChatMessage]) -> None:
        self._messages = list(messages)
        self._recompute()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Event application
    # ------------------------------------------------------------------

    def apply(self, event: TranscriptEvent) -> list[ChatMessage]:
        """Apply a typed update event and notify listeners."""
        touched = self._patch(event)
        if not touched and not isinstance(event, MessageAppended):
            logger.warning("No transcript entry matched %s event", event.kind)
        for listener in list(self._listeners):
            listener(event, touched)
        return touched

    def _patch(self, event: TranscriptEvent) -> list[ChatMessage]:
        if isinstance(event, MessageAppended):
            return [self.append(event.message)]

        if isinstance(event, CorrelationCaptured):
            return self.update_where(
                matches_entry(event.placeholder_id),
                lambda m: m.model_copy(update={"correlation_id": event.correlation_id}),
            )

        if isinstance(event, TextUpdated):
            return self.update_where(
                matches_entry(event.placeholder_id),
                lambda m: m.model_copy(update={"text": event.text}),
            )

        if isinstance(event, StreamFailed):
            return self.update_where(
                matches_entry(event.placeholder_id),
                lambda m: m.model_copy(update={
                    "text": annotate_error(m.text, event.error),
                    "is_error": True,
                }),
            )

        if isinstance(event, UsageFinalized):
            return self.update_where(
                matches_entry(event.placeholder_id, event.correlation_id),
                lambda m: m.model_copy(update={
                    "id": event.correlation_id,
                    "text": event.text,
                    "cost": event.cost,
                    "tokens": event.tokens,
                    "reasoning_note": event.reasoning_note,
                    "correlation_id": event.correlation_id,
                }),
            )

        if isinstance(event, UsageUnavailable):
            return self.update_where(
                matches_entry(event.placeholder_id, event.correlation_id),
                lambda m: m.model_copy(update={
                    "id": event.new_id,
                    "text": event.text,
                    "cost": None,
                    "tokens": None,
                    "reasoning_note": event.note,
                }),
            )

        raise TypeError(f"Unknown transcript event: {event!r}")

    def _recompute(self) -> None:
        self._total_cost = sum((
            msg.cost.total
            for msg in self._messages
            if msg.sender == Sender.ASSISTANT and msg.cost is not None
        ), 0.0)
