import codecs
import logging
from typing import Iterator

logger = logging.getLogger(__name__)


class FrameDecoder:
    """Turns raw stream chunks into complete lines.

    Chunks may split a line (or a multi-byte character) anywhere; the
    unfinished tail is kept in ``buffer`` until the next ``feed()``.
    Lines are yielded lazily, so a consumer that stops early leaves the
    rest in the buffer rather than losing it.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.buffer = ""

    def feed(self, chunk: bytes | str) -> Iterator[str]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self.buffer += chunk
        while True:
            newline = self.buffer.find("\n")
            if newline < 0:
                return
            line = self.buffer[:newline]
            self.buffer = self.buffer[newline + 1:]
            yield line.strip()

    def close(self) -> str:
        """Discard whatever incomplete content is left and return it."""
        leftover = self.buffer + self._decoder.decode(b"", final=True)
        self.buffer = ""
        self._decoder.reset()
        if leftover.strip():
            logger.debug("Discarding unterminated stream tail: %r", leftover[:200])
        return leftover
