import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)

DATA_MARKER = "data:"
DONE_SENTINEL = "[DONE]"


class LineKind(Enum):
    PAYLOAD = "payload"
    DONE = "done"
    IGNORED = "ignored"


@dataclass
class DeltaUpdate:
    """What a single line changed.

    ``correlation_id`` is set only on the line that captured it; ``text``
    is the full accumulated text, set only when a content delta arrived.
    """
    correlation_id: Optional[str] = None
    text: Optional[str] = None
    done: bool = False


def _data_field(line: str) -> Optional[str]:
    if not line.startswith(DATA_MARKER):
        return None
    value = line[len(DATA_MARKER):]
    if value.startswith(" "):
        value = value[1:]
    return value.strip()


def classify_line(line: str) -> tuple[LineKind, Optional[dict]]:
    """Classify one decoded line of the completion stream."""
    data = _data_field(line)
    if data is None:
        # Blank separators and ": OPENROUTER PROCESSING" keep-alives
        if line:
            logger.debug("Ignoring stream line: %r", line[:200])
        return LineKind.IGNORED, None
    if data == DONE_SENTINEL:
        return LineKind.DONE, None
    if not data:
        return LineKind.IGNORED, None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        logger.warning("Error parsing stream data: %s Data: %r", e, data[:200])
        return LineKind.IGNORED, None
    if not isinstance(payload, dict):
        logger.warning("Ignoring non-object stream payload: %r", data[:200])
        return LineKind.IGNORED, None
    return LineKind.PAYLOAD, payload


def _content_delta(payload: dict) -> Optional[str]:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first: Any = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def is_terminal_fragment(buffer: str) -> bool:
    """True when the undecoded tail is the DONE line missing only its newline."""
    return classify_line(buffer.strip())[0] is LineKind.DONE


class DeltaAccumulator:
    """Accumulates assistant text and the generation id for one stream."""

    def __init__(self) -> None:
        self.text = ""
        self.correlation_id: Optional[str] = None
        self.done = False

    def finish(self) -> None:
        self.done = True

    def consume(self, line: str) -> DeltaUpdate:
        if self.done:
            return DeltaUpdate(done=True)

        kind, payload = classify_line(line)
        if kind is LineKind.DONE:
            self.done = True
            return DeltaUpdate(done=True)
        if kind is LineKind.IGNORED:
            return DeltaUpdate()

        update = DeltaUpdate()
        generation_id = payload.get("id")
        if isinstance(generation_id, str) and generation_id and self.correlation_id is None:
            self.correlation_id = generation_id
            update.correlation_id = generation_id

        delta = _content_delta(payload)
        if delta is not None:
            self.text += delta
            update.text = self.text
        return update
