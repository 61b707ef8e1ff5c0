"""OCI Object Storage adapter.

OCI exposes an S3 compatibility API authenticated with customer secret keys,
so the adapter reuses the S3 implementation against the tenancy endpoint
(``https://{namespace}.compat.objectstorage.{region}.oraclecloud.com``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from storage_gateway.infra.storage.errors import StorageError
from storage_gateway.infra.storage.s3_client import S3StorageClient

if TYPE_CHECKING:
    from storage_gateway.common.config import StorageConfig


class OCIStorageClient(S3StorageClient):
    provider = "oci"

    @staticmethod
    def _build_client(config: "StorageConfig") -> Any:
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for OCI storage backend. "
                "Install with: pip install boto3"
            ) from exc

        if not config.endpoint:
            raise StorageError("OCI storage requires an S3 compatibility endpoint")

        return boto3.client(
            "s3",
            endpoint_url=config.endpoint,
            region_name=config.region,
            aws_access_key_id=config.identity,
            aws_secret_access_key=config.credential,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
