"""Incremental decoder for ``data: <json>`` server-sent event streams."""

from __future__ import annotations

import codecs
from collections.abc import AsyncIterator

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    """Turn arbitrarily split byte chunks into ``data:`` payload strings.

    Chunk boundaries need not line up with line boundaries: an unterminated
    trailing line is kept in the buffer until the rest of it arrives. Once
    the ``[DONE]`` sentinel has been seen the decoder is exhausted and
    ignores further input.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume a chunk and return the complete frames it finished."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        frames: list[str] = []
        while not self.done:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1 :]
            self._handle_line(line, frames)
        return frames

    def flush(self) -> list[str]:
        """Decode whatever is left once the transport has closed."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        frames: list[str] = []
        self._handle_line(line, frames)
        return frames

    def _handle_line(self, line: str, frames: list[str]) -> None:
        line = line.strip()
        # blank separators, "event:" / "id:" fields and ":" comments are ignored
        if not line.startswith(DATA_PREFIX):
            return
        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            self.done = True
            self._buffer = ""
            return
        if payload:
            frames.append(payload)


async def iter_frames(byte_stream: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """Yield frame payloads until the sentinel or the end of the transport."""
    decoder = SSEDecoder()
    async for chunk in byte_stream:
        for frame in decoder.feed(chunk):
            yield frame
        if decoder.done:
            return
    for frame in decoder.flush():
        yield frame
