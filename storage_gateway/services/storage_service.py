"""Provider-agnostic storage service.

``StorageService`` is the one contract the HTTP layer talks to. It composes a
provider adapter with the shared algorithms: access-policy computation,
chunked text decoding, settle-all metadata aggregation, streaming upload and
error classification. Adapter calls are blocking SDK calls, so each one runs
in the threadpool and the event loop stays free while it is in flight.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, BinaryIO, Callable, Iterator, Mapping

from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from storage_gateway.infra.observability.metrics import STORAGE_OPERATIONS
from storage_gateway.infra.storage.client import Capability, ObjectStoreClient
from storage_gateway.infra.storage.decoding import decode_stream
from storage_gateway.infra.storage.errors import (
    CapabilityNotSupportedError,
    StorageError,
    classify,
)
from storage_gateway.infra.storage.policy import (
    DEFAULT_SIGNED_URL_WIDTH_MINUTES,
    AccessPolicy,
    BlobReference,
    Permission,
    compute_access_policy,
)
from storage_gateway.services.aggregation import PropertyOutcome, aggregate_properties
from storage_gateway.services.upload_pipeline import (
    DEFAULT_UPLOAD_CONCURRENCY,
    ProgressCallback,
    ProgressReader,
)

logger = logging.getLogger("storage.service")

JSON_SUFFIX = ".json"


@dataclass(frozen=True, slots=True)
class ReadTarget:
    """How a read request is served: proxied bytes or a signed URL."""

    stream: AsyncIterator[bytes] | None = None
    signed_url: str | None = None


class StorageService:
    """Canonical storage contract on top of one provider adapter.

    Single-object operations raise the first classified error
    (``NotFoundError``, ``ForbiddenError``, ``ServerError``). Batch property
    lookups never raise for an individual entry.
    """

    def __init__(
        self,
        adapter: ObjectStoreClient,
        *,
        signed_url_width_minutes: int = DEFAULT_SIGNED_URL_WIDTH_MINUTES,
        upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY,
    ) -> None:
        self._adapter = adapter
        self._signed_url_width_minutes = signed_url_width_minutes
        self._upload_concurrency = upload_concurrency

    @property
    def provider(self) -> str:
        return self._adapter.provider

    @property
    def capabilities(self) -> frozenset[Capability]:
        return self._adapter.capabilities

    def supports(self, capability: Capability) -> bool:
        return capability in self._adapter.capabilities

    def _require(self, capability: Capability) -> None:
        if not self.supports(capability):
            raise CapabilityNotSupportedError(
                f"{self.provider} storage does not support {capability.value}"
            )

    def _record(self, operation: str, outcome: str) -> None:
        STORAGE_OPERATIONS.labels(self.provider, operation, outcome).inc()

    def _fail(self, operation: str, ref: BlobReference, exc: BaseException) -> StorageError:
        error = classify(exc, self._adapter.error_status(exc))
        self._record(operation, error.kind)
        logger.log(
            logging.WARNING if error.status_code < 500 else logging.ERROR,
            "%s failed container=%s path=%s kind=%s error=%s",
            operation,
            ref.container,
            ref.path,
            error.kind,
            error,
            extra={
                "extra": {
                    "provider": self.provider,
                    "operation": operation,
                    "container": ref.container,
                    "path": ref.path,
                    "kind": error.kind,
                    "status": error.status_code,
                }
            },
        )
        return error

    async def _call(
        self,
        operation: str,
        ref: BlobReference,
        func: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        try:
            result = await run_in_threadpool(func, *args, **kwargs)
        except Exception as exc:
            error = self._fail(operation, ref, exc)
            if error is exc:
                raise
            raise error from exc
        self._record(operation, "ok")
        return result

    async def file_exists(self, container: str, path: str) -> dict[str, bool]:
        """Return ``{"exists": True}`` or raise ``NotFoundError``."""
        self._require(Capability.EXISTS)
        ref = BlobReference(container, path)
        logger.info("file_exists container=%s path=%s", container, path)
        await self._call(
            "file_exists",
            ref,
            self._adapter.head_object,
            container=container,
            path=path,
        )
        return {"exists": True}

    async def generate_signature(
        self,
        container: str,
        path: str,
        policy: AccessPolicy,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """Sign ``policy`` for one object and return the query-string token."""
        self._require(Capability.SIGNED_URL)
        ref = BlobReference(container, path)
        return await self._call(
            "sign",
            ref,
            self._adapter.sign,
            container=container,
            path=path,
            policy=policy,
            headers=headers,
        )

    def get_url(self, container: str, path: str, token: str) -> str:
        return f"{self._adapter.object_url(container=container, path=path)}?{token}"

    async def generate_signed_url(
        self,
        container: str,
        path: str,
        policy: AccessPolicy,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        token = await self.generate_signature(container, path, policy, headers)
        return self.get_url(container, path, token)

    async def signed_url(
        self,
        container: str,
        path: str,
        width_minutes: int | None = None,
        permission: Permission = Permission.READ,
        headers: Mapping[str, str] | None = None,
        now: datetime | None = None,
    ) -> str:
        """Compute a centred access policy and return the signed URL."""
        if width_minutes is None:
            width_minutes = self._signed_url_width_minutes
        policy = compute_access_policy(
            width_minutes,
            now=now,
            permission=permission,
        )
        return await self.generate_signed_url(container, path, policy, headers)

    def _open(self, container: str, path: str) -> tuple[bytes | None, Iterator[bytes]]:
        chunks = iter(self._adapter.open_download(container=container, path=path))
        return next(chunks, None), chunks

    async def stream_download(self, container: str, path: str) -> AsyncIterator[bytes]:
        """Open a download and return its chunks as an async iterator.

        The first chunk is fetched before returning, so a missing object or
        rejected credential raises here rather than halfway through a
        response. Later failures are raised to whoever consumes the iterator.
        """
        self._require(Capability.DOWNLOAD)
        ref = BlobReference(container, path)
        logger.info("stream_download container=%s path=%s", container, path)
        first, rest = await self._call("download", ref, self._open, container, path)
        return self._relay(ref, first, rest)

    async def _relay(
        self, ref: BlobReference, first: bytes | None, rest: Iterator[bytes]
    ) -> AsyncIterator[bytes]:
        try:
            if first:
                yield first
            async for chunk in iterate_in_threadpool(rest):
                yield chunk
        except Exception as exc:
            error = self._fail("download_stream", ref, exc)
            if error is exc:
                raise
            raise error from exc
        finally:
            # Releases the SDK body when the consumer stops early.
            close = getattr(rest, "close", None)
            if close is not None:
                close()

    async def text_download(
        self, container: str, path: str, encoding: str = "utf-8"
    ) -> str:
        stream = await self.stream_download(container, path)
        try:
            text = await decode_stream(stream, encoding)
        except UnicodeDecodeError as exc:
            raise self._fail("text_download", BlobReference(container, path), exc) from exc
        logger.info("text_download succeeded container=%s path=%s", container, path)
        return text

    async def stream_upload(
        self,
        container: str,
        path: str,
        source: BinaryIO,
        size: int | None,
        *,
        concurrency: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Stream ``source`` into ``container/path``.

        ``on_progress`` receives ``(bytes_loaded, total_bytes)`` as the SDK
        pulls from the source. It may be invoked from a worker thread.
        """
        self._require(Capability.UPLOAD)
        ref = BlobReference(container, path)
        reader = ProgressReader(source, size, on_progress, cancel_event)
        await self._call(
            "upload",
            ref,
            self._adapter.upload_stream,
            container=container,
            path=path,
            source=reader,
            size=size,
            concurrency=concurrency or self._upload_concurrency,
        )
        logger.info(
            "stream_upload succeeded container=%s path=%s bytes=%s",
            container,
            path,
            reader.bytes_loaded,
        )

    async def batch_get_properties(
        self, container: str, names_to_paths: Mapping[str, str]
    ) -> dict[str, PropertyOutcome]:
        """Fetch properties for every entry concurrently; never raises per entry."""
        self._require(Capability.PROPERTIES)
        logger.info(
            "batch_get_properties container=%s count=%s", container, len(names_to_paths)
        )

        async def lookup(path: str) -> Any:
            return await self._call(
                "properties",
                BlobReference(container, path),
                self._adapter.head_object,
                container=container,
                path=path,
            )

        return await aggregate_properties(lookup, names_to_paths)

    async def resolve_read(
        self,
        container: str,
        path: str,
        content_disposition: str | None = None,
    ) -> ReadTarget:
        """Serve JSON objects inline and everything else through a signed URL."""
        if path.endswith(JSON_SUFFIX):
            return ReadTarget(stream=await self.stream_download(container, path))

        await self.file_exists(container, path)
        headers = {"content_disposition": content_disposition} if content_disposition else None
        url = await self.signed_url(container, path, headers=headers)
        return ReadTarget(signed_url=url)

    def close(self) -> None:
        self._adapter.close()
