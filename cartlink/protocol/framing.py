from __future__ import annotations

import logging
from typing import Optional


class LineFramer:
    """
    Newline framing over an arbitrarily chunked byte stream.

    Bytes after the last b"\\n" stay in the buffer verbatim until a later
    chunk terminates them, so feeding a stream in one chunk or in N chunks
    yields the same lines in the same order.
    """

    def __init__(self, encoding: str = "utf-8", logger: Optional[logging.Logger] = None):
        self.encoding = encoding
        self.buffer = bytearray()
        self._log = logger or logging.getLogger(__name__)

    @property
    def pending(self) -> bytes:
        """Unterminated tail currently held."""
        return bytes(self.buffer)

    def feed(self, data: bytes) -> list[str]:
        """Append `data` and return every line it completes (without the terminator)."""
        if not data:
            return []
        self.buffer.extend(data)

        end = self.buffer.rfind(b"\n")
        if end < 0:
            return []

        complete = bytes(self.buffer[:end])
        del self.buffer[: end + 1]

        lines: list[str] = []
        for raw in complete.split(b"\n"):
            # decode per line: multi-byte characters are never split here
            line = raw.decode(self.encoding, errors="replace").rstrip("\r")
            if line.strip():
                lines.append(line)

        self._log.debug("FRAMER lines=%d pending=%d", len(lines), len(self.buffer))
        return lines

    def reset(self) -> None:
        self.buffer.clear()
