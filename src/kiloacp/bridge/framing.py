"""Newline framing for kilo's stdout.

kilo writes one JSON record per line, but the pipe hands us arbitrary
chunks: a chunk may hold several lines, a fragment of one, or split a
multi-byte UTF-8 character. LineFramer keeps the unterminated tail between
chunks and only ever emits complete lines, in input order, exactly once.

    framer = LineFramer()
    framer.feed(b'{"kind":"te')          # -> []
    framer.feed(b'xt"}\\n{"kind":"st')   # -> ['{"kind":"text"}']
    framer.flush()                       # -> '{"kind":"st'
"""

from __future__ import annotations

import codecs

CONTENT_ENCODING = "utf-8"
NEWLINE = "\n"


class LineFramer:
    """Split a byte stream into newline-terminated text lines."""

    def __init__(self, encoding: str = CONTENT_ENCODING) -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def buffer(self) -> str:
        """Text received but not yet terminated by a newline."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Consume a chunk and return the lines it completed.

        The last segment after splitting (possibly empty) is retained as the
        new buffer; every segment before it is a complete line.
        """
        if not chunk:
            return []
        *lines, self._buffer = (self._buffer + self._decoder.decode(chunk)).split(NEWLINE)
        return lines

    def flush(self) -> str | None:
        """Emit the retained tail as a final line, if it has any content.

        Called once the stream has ended. The buffer is always cleared.
        """
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if tail.strip():
            return tail
        return None
