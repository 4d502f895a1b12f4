"""Split the serial byte stream into text frames."""

from __future__ import annotations

from typing import Iterator


class FrameReader:
    """Buffers partial input and yields complete delimiter-terminated frames."""

    def __init__(self, delimiter: bytes = b"\n", encoding: str = "ascii") -> None:
        if not delimiter:
            raise ValueError("Frame delimiter must not be empty.")
        self.delimiter = delimiter
        self.encoding = encoding
        self._buffer = bytearray()

    @property
    def residual(self) -> bytes:
        """Bytes received after the last delimiter."""
        return bytes(self._buffer)

    def feed(self, chunk: bytes) -> Iterator[str]:
        # Buffer eagerly so nothing is lost if the caller never iterates.
        self._buffer.extend(chunk)
        return self._drain()

    def _drain(self) -> Iterator[str]:
        width = len(self.delimiter)
        while True:
            index = self._buffer.find(self.delimiter)
            if index < 0:
                return
            frame = bytes(self._buffer[:index])
            del self._buffer[: index + width]
            yield frame.decode(self.encoding, errors="replace")
