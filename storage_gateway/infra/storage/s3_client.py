"""S3-compatible storage adapter.

This module provides the adapter for AWS S3. The same code serves OCI Object
Storage through its S3 compatibility endpoint (see ``oci_client``).

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO, Iterator, Mapping
from urllib.parse import quote, urlsplit

from storage_gateway.infra.storage.client import (
    ALL_CAPABILITIES,
    DEFAULT_CHUNK_SIZE,
    ObjectProperties,
)
from storage_gateway.infra.storage.errors import StorageError
from storage_gateway.infra.storage.policy import AccessPolicy, Permission

if TYPE_CHECKING:
    from storage_gateway.common.config import StorageConfig

PRESIGN_OPERATIONS: dict[Permission, str] = {
    Permission.READ: "get_object",
    Permission.WRITE: "put_object",
    Permission.DELETE: "delete_object",
}

NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
FORBIDDEN_CODES = {
    "403",
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
}


class S3StorageClient:
    """S3-compatible object storage adapter.

    Uses path-style addressing so that object URLs are always
    ``{endpoint}/{bucket}/{key}`` and match the presigned URLs boto3 returns.
    """

    provider = "aws"
    capabilities = ALL_CAPABILITIES

    def __init__(
        self, *, config: "StorageConfig", chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> None:
        """Initialize the S3 client from a validated storage config.

        Args:
            config: Storage configuration; ``identity`` and ``credential`` are
                the access key id and secret access key.
            chunk_size: Download chunk size in bytes.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._config = config
        self._chunk_size = chunk_size
        self._client = self._build_client(config)

    @staticmethod
    def _build_client(config: "StorageConfig") -> Any:
        """Create a boto3 S3 client from the storage config."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for S3 storage backend. "
                "Install with: pip install boto3"
            ) from exc

        return boto3.client(
            "s3",
            endpoint_url=config.endpoint,
            region_name=config.region,
            aws_access_key_id=config.identity,
            aws_secret_access_key=config.credential,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )

    def head_object(self, *, container: str, path: str) -> ObjectProperties:
        response = self._client.head_object(Bucket=container, Key=path)
        size = response.get("ContentLength")
        return ObjectProperties(
            last_modified=response["LastModified"],
            size_bytes=int(size) if size is not None else 0,
        )

    def open_download(self, *, container: str, path: str) -> Iterator[bytes]:
        response = self._client.get_object(Bucket=container, Key=path)
        return self._iter_body(response["Body"])

    def _iter_body(self, body: Any) -> Iterator[bytes]:
        try:
            yield from body.iter_chunks(chunk_size=self._chunk_size)
        finally:
            body.close()

    def upload_stream(
        self,
        *,
        container: str,
        path: str,
        source: BinaryIO,
        size: int | None,
        concurrency: int,
    ) -> None:
        """Stream ``source`` using boto3's managed multipart transfer."""
        from boto3.s3.transfer import TransferConfig

        self._client.upload_fileobj(
            source,
            container,
            path,
            Config=TransferConfig(max_concurrency=concurrency),
        )

    def sign(
        self,
        *,
        container: str,
        path: str,
        policy: AccessPolicy,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """Presign the operation matching the policy's permission.

        S3 has no start bound; the URL is valid from signing time until
        ``policy.expires_on``.
        """
        params: dict[str, Any] = {"Bucket": container, "Key": path}
        disposition = (headers or {}).get("content_disposition")
        if disposition and policy.permission is Permission.READ:
            params["ResponseContentDisposition"] = disposition

        url = self._client.generate_presigned_url(
            PRESIGN_OPERATIONS[policy.permission],
            Params=params,
            ExpiresIn=policy.lifetime_seconds,
        )
        if not url:
            raise StorageError("Generated presigned URL is empty")
        return urlsplit(str(url)).query

    def object_url(self, *, container: str, path: str) -> str:
        endpoint = str(self._client.meta.endpoint_url).rstrip("/")
        return f"{endpoint}/{container}/{quote(path, safe='/~')}"

    def error_status(self, exc: BaseException) -> int | None:
        response = getattr(exc, "response", None)
        if not isinstance(response, dict):
            return None
        status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if status:
            return int(status)
        code = str(response.get("Error", {}).get("Code", ""))
        if code in NOT_FOUND_CODES:
            return 404
        if code in FORBIDDEN_CODES:
            return 403
        return None

    def close(self) -> None:
        self._client.close()
