"""Streaming upload of multipart file parts."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, AsyncIterable, BinaryIO, Callable, Optional

from python_multipart.exceptions import MultipartParseError

from storage_gateway.infra.storage.errors import StorageError, UploadCancelledError
from storage_gateway.services.multipart_stream import (
    BodyPipe,
    MultipartEventParser,
    PartEvent,
    PartEventKind,
)

if TYPE_CHECKING:
    from storage_gateway.services.storage_service import StorageService

DEFAULT_UPLOAD_CONCURRENCY = 5

ProgressCallback = Callable[[int, Optional[int]], None]

logger = logging.getLogger("storage.upload")


def log_progress(bytes_loaded: int, total_bytes: int | None) -> None:
    logger.debug("upload progress %s of %s bytes", bytes_loaded, total_bytes)


class ProgressReader:
    """Read-only, non-seekable view over an upload source.

    Reports ``(bytes_loaded, total_bytes)`` after every read the storage SDK
    performs and aborts the upload once ``cancel_event`` is set.
    """

    def __init__(
        self,
        source: BinaryIO,
        total: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._source = source
        self._total = total
        self._on_progress = on_progress
        self._cancel_event = cancel_event
        self.bytes_loaded = 0

    def read(self, size: int = -1) -> bytes:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise UploadCancelledError(
                f"upload cancelled after {self.bytes_loaded} bytes"
            )
        chunk = self._source.read(size)
        if chunk:
            self.bytes_loaded += len(chunk)
            if self._on_progress is not None:
                self._on_progress(self.bytes_loaded, self._total)
        return chunk

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def tell(self) -> int:
        return self.bytes_loaded


def _sanitize_filename(filename: str) -> str:
    """Sanitize filename by removing path separators."""
    cleaned = filename.strip().replace("\\", "_").replace("/", "_")
    return cleaned or "file"


def destination_for(device_id: str, filename: str, now: datetime | None = None) -> str:
    """Build ``{YYYY-MM-DD}/{device_id}_{epoch_ms}.{filename}``."""
    moment = now or datetime.now(timezone.utc)
    folder = moment.strftime("%Y-%m-%d")
    stamp = int(moment.timestamp() * 1000)
    return f"{folder}/{device_id}_{stamp}.{_sanitize_filename(filename)}"


@dataclass(frozen=True, slots=True)
class UploadPart:
    """One file part of a multipart body."""

    filename: str | None
    source: BinaryIO
    size: int | None


@dataclass(frozen=True, slots=True)
class UploadDescriptor:
    destination_path: str
    source: BinaryIO
    expected_size: int | None
    concurrency: int


@dataclass
class UploadOutcome:
    uploaded: list[str] = field(default_factory=list)
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _ActiveUpload:
    destination_path: str
    pipe: BodyPipe
    task: "asyncio.Task[StorageError | None]"
    cancel_event: threading.Event

    def cancel(self) -> None:
        self.cancel_event.set()
        self.pipe.abort()


class StreamingUploadPipeline:
    """Streams every file part of a multipart body into one container.

    Each file part is handed to the store as soon as its headers are parsed
    and its bytes flow through a bounded ``BodyPipe`` while the rest of the
    body is still being read. Parts are uploaded in order and the first
    failure stops the pipeline. Parts without a filename (plain form fields)
    are skipped.
    """

    def __init__(
        self,
        service: "StorageService",
        container: str,
        *,
        concurrency: int = DEFAULT_UPLOAD_CONCURRENCY,
        on_progress: ProgressCallback | None = log_progress,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._service = service
        self._container = container
        self._concurrency = concurrency
        self._on_progress = on_progress
        self._cancel_event = cancel_event or threading.Event()

    def describe(
        self, part: UploadPart, device_id: str, now: datetime | None = None
    ) -> UploadDescriptor:
        return UploadDescriptor(
            destination_path=destination_for(device_id, part.filename or "", now),
            source=part.source,
            expected_size=part.size,
            concurrency=self._concurrency,
        )

    async def upload_multipart(
        self, body: AsyncIterable[bytes], boundary: bytes, device_id: str
    ) -> UploadOutcome:
        """Parse ``body`` incrementally and stream each file part to the store.

        Raises:
            MultipartParseError: If the body is malformed or ends inside a part.
        """
        outcome = UploadOutcome()
        parser = MultipartEventParser(boundary)
        active: _ActiveUpload | None = None
        try:
            async for chunk in body:
                active = await self._apply(parser.feed(chunk), active, device_id, outcome)
                if outcome.error is not None:
                    return outcome
            active = await self._apply(parser.finish(), active, device_id, outcome)
        except Exception:
            if active is not None:
                await self._abort(active)
            raise
        except BaseException:
            if active is not None:
                active.cancel()
            raise

        if active is not None:
            await self._abort(active)
            raise MultipartParseError("request body ended inside a file part")
        return outcome

    async def _abort(self, active: _ActiveUpload) -> None:
        active.cancel()
        error = await active.task
        logger.warning(
            "Upload of %s cancelled: %s", active.destination_path, error
        )

    async def _apply(
        self,
        events: list[PartEvent],
        active: _ActiveUpload | None,
        device_id: str,
        outcome: UploadOutcome,
    ) -> _ActiveUpload | None:
        for event in events:
            if outcome.error is not None:
                break
            if event.kind is PartEventKind.HEADERS:
                if event.filename:
                    active = self._begin(event.filename, device_id)
            elif active is None:
                continue
            elif event.kind is PartEventKind.DATA:
                if not await active.pipe.send(event.data):
                    await self._settle(active, outcome)
                    active = None
            elif event.kind is PartEventKind.END:
                await active.pipe.close()
                await self._settle(active, outcome)
                active = None
        return active

    def _begin(self, filename: str, device_id: str) -> _ActiveUpload:
        pipe = BodyPipe(cancel_event=self._cancel_event)
        descriptor = self.describe(UploadPart(filename, pipe, None), device_id)
        task = asyncio.create_task(self._transfer(descriptor, device_id))
        task.add_done_callback(lambda _: pipe.abandon())
        return _ActiveUpload(
            destination_path=descriptor.destination_path,
            pipe=pipe,
            task=task,
            cancel_event=self._cancel_event,
        )

    async def _settle(self, active: _ActiveUpload, outcome: UploadOutcome) -> None:
        error = await active.task
        if error is None:
            outcome.uploaded.append(active.destination_path)
        else:
            outcome.error = error

    async def _transfer(
        self, descriptor: UploadDescriptor, device_id: str
    ) -> StorageError | None:
        logger.info(
            "Uploading file to container %s as %s with size %s",
            self._container,
            descriptor.destination_path,
            descriptor.expected_size,
            extra={
                "extra": {
                    "container": self._container,
                    "object_name": descriptor.destination_path,
                    "size": descriptor.expected_size,
                    "device_id": device_id,
                }
            },
        )
        try:
            await self._service.stream_upload(
                self._container,
                descriptor.destination_path,
                descriptor.source,
                descriptor.expected_size,
                concurrency=descriptor.concurrency,
                on_progress=self._on_progress,
                cancel_event=self._cancel_event,
            )
        except StorageError as exc:
            return exc
        return None
