"""Provider adapter protocol and data types.

Every cloud provider is reached through one adapter that satisfies
``ObjectStoreClient``. Adapters are thin and synchronous: they translate the
canonical calls into SDK calls and expose the SDK's error status. All
provider-independent behaviour lives in ``StorageService``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Iterator, Mapping, Protocol

from storage_gateway.infra.storage.policy import AccessPolicy

DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024


class Capability(str, Enum):
    EXISTS = "exists"
    SIGNED_URL = "signed_url"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    PROPERTIES = "properties"


ALL_CAPABILITIES: frozenset[Capability] = frozenset(Capability)


@dataclass(frozen=True, slots=True)
class ObjectProperties:
    """Metadata from a property lookup."""

    last_modified: datetime
    size_bytes: int


class ObjectStoreClient(Protocol):
    """Protocol defining the interface for provider adapters.

    Implementations must provide all methods defined here. Methods may raise
    whatever the underlying SDK raises; ``error_status`` tells the service
    how to classify it.
    """

    provider: str
    capabilities: frozenset[Capability]

    def head_object(self, *, container: str, path: str) -> ObjectProperties:
        """Fetch object metadata without downloading the content.

        Args:
            container: Container or bucket name.
            path: Object path within the container.

        Returns:
            ObjectProperties with last-modified time and size.
        """
        ...

    def open_download(self, *, container: str, path: str) -> Iterator[bytes]:
        """Start a download and return an iterator over its byte chunks.

        The first request to the backing store may be deferred until the
        iterator is first advanced.
        """
        ...

    def upload_stream(
        self,
        *,
        container: str,
        path: str,
        source: BinaryIO,
        size: int | None,
        concurrency: int,
    ) -> None:
        """Stream ``source`` into ``container/path``.

        Args:
            container: Destination container or bucket.
            path: Destination object path.
            source: Readable file-like object; the SDK pulls from it at its
                own rate.
            size: Total bytes, when known.
            concurrency: Hint for parallel block/part uploads.
        """
        ...

    def sign(
        self,
        *,
        container: str,
        path: str,
        policy: AccessPolicy,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """Produce the query-string token granting ``policy`` on one object.

        Supported header keys: ``content_disposition``.
        """
        ...

    def object_url(self, *, container: str, path: str) -> str:
        """Return the unsigned URL of an object."""
        ...

    def error_status(self, exc: BaseException) -> int | None:
        """Extract the backing-store HTTP status from an SDK error."""
        ...

    def close(self) -> None:
        """Release the SDK client."""
        ...
