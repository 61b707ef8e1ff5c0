"""Incremental text decoding for chunked downloads."""

from __future__ import annotations

import codecs
from typing import AsyncIterable, Iterable


class ChunkedTextDecoder:
    """Decodes a byte stream that arrives in arbitrary chunks.

    Chunk boundaries may fall inside a multi-byte character. Incomplete
    trailing bytes are held back and prefixed to the next chunk, so the joined
    output always equals decoding the whole payload in one pass.
    """

    def __init__(self, encoding: str = "utf-8", errors: str = "strict") -> None:
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        self._parts: list[str] = []

    def feed(self, chunk: bytes) -> str:
        """Decode ``chunk`` and return the characters completed by it."""
        text = self._decoder.decode(chunk)
        if text:
            self._parts.append(text)
        return text

    def finish(self) -> str:
        """Flush the decoder and return the full accumulated text.

        Raises:
            UnicodeDecodeError: If the stream ended inside a character and
                the decoder was created with ``errors="strict"``.
        """
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self._parts.append(tail)
        return "".join(self._parts)


def decode_all(chunks: Iterable[bytes], encoding: str = "utf-8") -> str:
    decoder = ChunkedTextDecoder(encoding)
    for chunk in chunks:
        decoder.feed(chunk)
    return decoder.finish()


async def decode_stream(chunks: AsyncIterable[bytes], encoding: str = "utf-8") -> str:
    decoder = ChunkedTextDecoder(encoding)
    async for chunk in chunks:
        decoder.feed(chunk)
    return decoder.finish()
