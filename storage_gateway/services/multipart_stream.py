"""Incremental multipart parsing for uploads that stream while the body arrives.

``MultipartEventParser`` wraps python-multipart's push parser and turns its
callbacks into a list of events per body chunk, the same way Starlette's own
form parser does. ``BodyPipe`` carries the data of one file part from the
request handler to the storage SDK, which reads it from a worker thread.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from enum import Enum

from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.concurrency import run_in_threadpool

from storage_gateway.infra.storage.errors import UploadCancelledError

DEFAULT_PIPE_CHUNKS = 8


class PartEventKind(Enum):
    HEADERS = 1
    DATA = 2
    END = 3


@dataclass(frozen=True, slots=True)
class PartEvent:
    kind: PartEventKind
    data: bytes = b""
    field_name: str | None = None
    filename: str | None = None


def multipart_boundary(content_type: str | None) -> bytes | None:
    """Return the boundary of a ``multipart/form-data`` content type, else None."""
    if not content_type:
        return None
    media_type, options = parse_options_header(content_type)
    if media_type.lower() != b"multipart/form-data":
        return None
    return options.get(b"boundary") or None


def _decode(value: bytes | None) -> str | None:
    if value is None:
        return None
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


class MultipartEventParser:
    """Feeds body chunks to the push parser and collects part events.

    Parser callbacks are synchronous, so they only record what happened;
    the caller acts on the events (and may await) after each ``feed``.

    Raises:
        python_multipart.exceptions.MultipartParseError: On a malformed body.
    """

    def __init__(self, boundary: bytes) -> None:
        self._events: list[PartEvent] = []
        self._header_name = b""
        self._header_value = b""
        self._disposition: bytes | None = None
        self._parser = MultipartParser(
            boundary,
            {
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
            },
        )

    def feed(self, chunk: bytes) -> list[PartEvent]:
        self._parser.write(chunk)
        return self._drain()

    def finish(self) -> list[PartEvent]:
        self._parser.finalize()
        return self._drain()

    def _drain(self) -> list[PartEvent]:
        events, self._events = self._events, []
        return events

    def _on_part_begin(self) -> None:
        self._disposition = None

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._events.append(PartEvent(PartEventKind.DATA, data=data[start:end]))

    def _on_part_end(self) -> None:
        self._events.append(PartEvent(PartEventKind.END))

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        if self._header_name.lower() == b"content-disposition":
            self._disposition = self._header_value
        self._header_name = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        options: dict[bytes, bytes] = {}
        if self._disposition is not None:
            _, options = parse_options_header(self._disposition)
        self._events.append(
            PartEvent(
                PartEventKind.HEADERS,
                field_name=_decode(options.get(b"name")),
                filename=_decode(options.get(b"filename")),
            )
        )


class BodyPipe:
    """Bounded byte pipe from the request handler to a storage SDK thread.

    ``send`` suspends the handler while ``max_chunks`` chunks are waiting, so
    a slow store slows down how fast the request body is read. ``read``
    blocks the SDK's worker thread until data or end of stream arrives, and
    raises ``UploadCancelledError`` once ``cancel_event`` is set.
    """

    def __init__(
        self,
        max_chunks: int = DEFAULT_PIPE_CHUNKS,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._queue: queue.Queue[bytes | None] = queue.Queue(maxsize=max_chunks)
        self._cancel_event = cancel_event
        self._buffer = bytearray()
        self._eof = False
        self._abandoned = False

    async def send(self, chunk: bytes) -> bool:
        """Queue ``chunk``. Returns False once the reader has stopped reading."""
        if not chunk:
            return not self._abandoned
        return await self._put(chunk)

    async def close(self) -> bool:
        """Signal end of stream to the reader."""
        return await self._put(None)

    async def _put(self, item: bytes | None) -> bool:
        if self._abandoned:
            return False
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            await run_in_threadpool(self._queue.put, item)
        return not self._abandoned

    def abandon(self) -> None:
        """Mark the reader as gone and release a writer blocked on a full pipe."""
        self._abandoned = True
        self._discard()

    def abort(self) -> None:
        """Wake a blocked reader; with ``cancel_event`` set its read raises."""
        self._discard()
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass

    def _discard(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def _check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise UploadCancelledError("upload cancelled while the request body was streaming")

    def read(self, size: int | None = -1) -> bytes:
        wanted = -1 if size is None else size
        while not self._eof and (wanted < 0 or len(self._buffer) < wanted):
            item = self._queue.get()
            if item is None:
                self._eof = True
            else:
                self._buffer.extend(item)
            self._check_cancelled()
        self._check_cancelled()

        if wanted < 0 or wanted >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:wanted])
            del self._buffer[:wanted]
        return data

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False
