"""In-memory provider adapter for testing storage operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, BinaryIO, Iterator, Mapping

from storage_gateway.infra.storage.client import (
    ALL_CAPABILITIES,
    Capability,
    ObjectProperties,
)
from storage_gateway.infra.storage.policy import AccessPolicy

FIXED_MODIFIED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class MockStoreError(Exception):
    """Mimics an SDK error carrying an HTTP status and raw payloads."""

    def __init__(self, status: int, message: str = "mock failure") -> None:
        super().__init__(message)
        self.status = status
        self.request = {"headers": {"Authorization": "SharedKey secret"}}
        self.response = {"body": b"raw"}


@dataclass
class MockObjectStore:
    """In-memory mock of ObjectStoreClient for testing."""

    provider: str = "mock"
    capabilities: frozenset[Capability] = ALL_CAPABILITIES
    chunk_size: int = 4
    deny_uploads: bool = False
    objects: dict[str, dict[str, Any]] = field(default_factory=dict)
    broken_streams: set[str] = field(default_factory=set)
    upload_calls: int = 0
    released_streams: int = 0
    upload_started: list[str] = field(default_factory=list)
    closed: bool = False

    def put(
        self,
        container: str,
        path: str,
        data: bytes,
        last_modified: datetime = FIXED_MODIFIED,
    ) -> None:
        """Test helper to seed an object."""
        self.objects[f"{container}/{path}"] = {
            "data": data,
            "last_modified": last_modified,
        }

    def get(self, container: str, path: str) -> bytes:
        return self.objects[f"{container}/{path}"]["data"]

    def _lookup(self, container: str, path: str) -> dict[str, Any]:
        key = f"{container}/{path}"
        if key not in self.objects:
            raise MockStoreError(404, f"{key} does not exist")
        return self.objects[key]

    def head_object(self, *, container: str, path: str) -> ObjectProperties:
        obj = self._lookup(container, path)
        return ObjectProperties(
            last_modified=obj["last_modified"], size_bytes=len(obj["data"])
        )

    def open_download(self, *, container: str, path: str) -> Iterator[bytes]:
        data = self._lookup(container, path)["data"]
        broken = f"{container}/{path}" in self.broken_streams
        return self._chunks(data, broken)

    def _chunks(self, data: bytes, broken: bool) -> Iterator[bytes]:
        try:
            for offset in range(0, len(data), self.chunk_size):
                if broken and offset > 0:
                    raise MockStoreError(500, "connection reset")
                yield data[offset : offset + self.chunk_size]
        finally:
            self.released_streams += 1

    def upload_stream(
        self,
        *,
        container: str,
        path: str,
        source: BinaryIO,
        size: int | None,
        concurrency: int,
    ) -> None:
        self.upload_calls += 1
        self.upload_started.append(path)
        if self.deny_uploads:
            raise MockStoreError(403, "AuthorizationFailure")
        buffer = bytearray()
        while True:
            chunk = source.read(self.chunk_size)
            if not chunk:
                break
            buffer.extend(chunk)
        self.put(container, path, bytes(buffer))

    def sign(
        self,
        *,
        container: str,
        path: str,
        policy: AccessPolicy,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        token = (
            f"sp={policy.permission.value}"
            f"&st={policy.starts_on:%Y-%m-%dT%H:%M:%SZ}"
            f"&se={policy.expires_on:%Y-%m-%dT%H:%M:%SZ}"
        )
        disposition = (headers or {}).get("content_disposition")
        if disposition:
            token += f"&rscd={disposition}"
        return token

    def object_url(self, *, container: str, path: str) -> str:
        return f"https://mock.blob/{container}/{path}"

    def error_status(self, exc: BaseException) -> int | None:
        return getattr(exc, "status", None)

    def close(self) -> None:
        self.closed = True
