"""Typed transcript update events.

The stream loop and the usage reconciler never touch transcript entries
directly; they emit these events and :meth:`Transcript.apply` is the only
place that turns them into entry patches.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel

from backend.models.schemas import ChatMessage, Cost, TokenUsage


class MessageAppended(BaseModel):
    kind: Literal["message_appended"] = "message_appended"
    message: ChatMessage


class CorrelationCaptured(BaseModel):
    kind: Literal["correlation_captured"] = "correlation_captured"
    placeholder_id: str
    correlation_id: str


class TextUpdated(BaseModel):
    """Full accumulated text so far, for verbatim replacement."""
    kind: Literal["text_updated"] = "text_updated"
    placeholder_id: str
    text: str


class StreamFailed(BaseModel):
    kind: Literal["stream_failed"] = "stream_failed"
    placeholder_id: str
    error: str


class UsageFinalized(BaseModel):
    kind: Literal["usage_finalized"] = "usage_finalized"
    placeholder_id: str
    correlation_id: str
    text: str
    cost: Cost
    tokens: TokenUsage
    reasoning_note: Optional[str] = None


class UsageUnavailable(BaseModel):
    """Terminal outcome without accounting; ``note`` says why."""
    kind: Literal["usage_unavailable"] = "usage_unavailable"
    placeholder_id: str
    correlation_id: Optional[str] = None
    text: str
    note: str
    new_id: str


TranscriptEvent = Union[
    MessageAppended,
    CorrelationCaptured,
    TextUpdated,
    StreamFailed,
    UsageFinalized,
    UsageUnavailable,
]
