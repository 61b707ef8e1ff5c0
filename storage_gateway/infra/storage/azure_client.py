"""Azure Blob Storage adapter.

Authenticates with a storage account shared key. The same key signs SAS
tokens locally, so signed URL generation needs no network round trip.

Dependencies:
    - azure-storage-blob
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO, Iterator, Mapping

from storage_gateway.infra.storage.client import (
    ALL_CAPABILITIES,
    DEFAULT_CHUNK_SIZE,
    ObjectProperties,
)
from storage_gateway.infra.storage.errors import StorageError
from storage_gateway.infra.storage.policy import AccessPolicy, Permission

if TYPE_CHECKING:
    from storage_gateway.common.config import StorageConfig


def _account_url(config: "StorageConfig") -> str:
    if config.endpoint:
        return config.endpoint.rstrip("/")
    return f"https://{config.identity}.blob.core.windows.net"


class AzureBlobClient:
    """Azure Blob Storage adapter built on ``BlobServiceClient``."""

    provider = "azure"
    capabilities = ALL_CAPABILITIES

    def __init__(
        self, *, config: "StorageConfig", chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> None:
        self._account_name = config.identity
        self._account_key = config.credential
        self._client = self._build_client(config, chunk_size)

    @staticmethod
    def _build_client(config: "StorageConfig", chunk_size: int) -> Any:
        """Create a BlobServiceClient authenticated with the account key."""
        try:
            from azure.storage.blob import BlobServiceClient
        except ImportError as exc:
            raise StorageError(
                "azure-storage-blob is required for Azure storage backend. "
                "Install with: pip install azure-storage-blob"
            ) from exc

        return BlobServiceClient(
            account_url=_account_url(config),
            credential={
                "account_name": config.identity,
                "account_key": config.credential,
            },
            max_chunk_get_size=chunk_size,
        )

    def _blob(self, container: str, path: str) -> Any:
        return self._client.get_blob_client(container=container, blob=path)

    def head_object(self, *, container: str, path: str) -> ObjectProperties:
        properties = self._blob(container, path).get_blob_properties()
        return ObjectProperties(
            last_modified=properties.last_modified,
            size_bytes=int(properties.size or 0),
        )

    def open_download(self, *, container: str, path: str) -> Iterator[bytes]:
        downloader = self._blob(container, path).download_blob()
        return downloader.chunks()

    def upload_stream(
        self,
        *,
        container: str,
        path: str,
        source: BinaryIO,
        size: int | None,
        concurrency: int,
    ) -> None:
        """Upload as a block blob, staging up to ``concurrency`` blocks at once."""
        self._blob(container, path).upload_blob(
            source,
            length=size,
            overwrite=True,
            max_concurrency=concurrency,
        )

    def sign(
        self,
        *,
        container: str,
        path: str,
        policy: AccessPolicy,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        from azure.storage.blob import BlobSasPermissions, generate_blob_sas

        permission = BlobSasPermissions(
            read=policy.permission is Permission.READ,
            write=policy.permission is Permission.WRITE,
            create=policy.permission is Permission.WRITE,
            delete=policy.permission is Permission.DELETE,
        )
        return generate_blob_sas(
            account_name=self._account_name,
            container_name=container,
            blob_name=path,
            account_key=self._account_key,
            permission=permission,
            start=policy.starts_on,
            expiry=policy.expires_on,
            content_disposition=(headers or {}).get("content_disposition"),
        )

    def object_url(self, *, container: str, path: str) -> str:
        return str(self._blob(container, path).url)

    def error_status(self, exc: BaseException) -> int | None:
        status = getattr(exc, "status_code", None)
        return status if isinstance(status, int) else None

    def close(self) -> None:
        self._client.close()
