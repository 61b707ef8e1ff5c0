"""Google Cloud Storage adapter.

Authenticates with a service account (client email plus PEM private key),
which also signs V4 URLs locally.

Dependencies:
    - google-cloud-storage
    - google-auth
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any, BinaryIO, Iterator, Mapping
from urllib.parse import urlsplit

from storage_gateway.infra.storage.client import (
    ALL_CAPABILITIES,
    DEFAULT_CHUNK_SIZE,
    ObjectProperties,
)
from storage_gateway.infra.storage.errors import StorageError
from storage_gateway.infra.storage.policy import AccessPolicy, Permission

if TYPE_CHECKING:
    from storage_gateway.common.config import StorageConfig

TOKEN_URI = "https://oauth2.googleapis.com/token"

SIGNED_METHODS: dict[Permission, str] = {
    Permission.READ: "GET",
    Permission.WRITE: "PUT",
    Permission.DELETE: "DELETE",
}


class GCSStorageClient:
    """Google Cloud Storage adapter built on ``google.cloud.storage.Client``."""

    provider = "gcloud"
    capabilities = ALL_CAPABILITIES

    def __init__(
        self, *, config: "StorageConfig", chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> None:
        self._chunk_size = chunk_size
        self._client = self._build_client(config)

    @staticmethod
    def _build_client(config: "StorageConfig") -> Any:
        try:
            from google.cloud import storage
            from google.oauth2 import service_account
        except ImportError as exc:
            raise StorageError(
                "google-cloud-storage is required for Google Cloud storage backend. "
                "Install with: pip install google-cloud-storage"
            ) from exc

        # Keys passed through environment variables usually carry escaped newlines.
        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": config.identity,
                "private_key": config.credential.replace("\\n", "\n"),
                "token_uri": TOKEN_URI,
                "project_id": config.project_id,
            }
        )
        return storage.Client(project=config.project_id, credentials=credentials)

    def _blob(self, container: str, path: str) -> Any:
        return self._client.bucket(container).blob(path)

    def head_object(self, *, container: str, path: str) -> ObjectProperties:
        blob = self._blob(container, path)
        blob.reload()
        return ObjectProperties(
            last_modified=blob.updated,
            size_bytes=int(blob.size or 0),
        )

    def open_download(self, *, container: str, path: str) -> Iterator[bytes]:
        reader = self._blob(container, path).open("rb", chunk_size=self._chunk_size)
        return self._iter_reader(reader)

    def _iter_reader(self, reader: Any) -> Iterator[bytes]:
        try:
            while True:
                chunk = reader.read(self._chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            reader.close()

    def upload_stream(
        self,
        *,
        container: str,
        path: str,
        source: BinaryIO,
        size: int | None,
        concurrency: int,
    ) -> None:
        """Upload through a resumable session.

        GCS uploads a single object sequentially, so ``concurrency`` is not used.
        """
        self._blob(container, path).upload_from_file(source, size=size, rewind=False)

    def sign(
        self,
        *,
        container: str,
        path: str,
        policy: AccessPolicy,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        url = self._blob(container, path).generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=policy.lifetime_seconds),
            method=SIGNED_METHODS[policy.permission],
            response_disposition=(headers or {}).get("content_disposition"),
        )
        if not url:
            raise StorageError("Generated signed URL is empty")
        return urlsplit(str(url)).query

    def object_url(self, *, container: str, path: str) -> str:
        return str(self._blob(container, path).public_url)

    def error_status(self, exc: BaseException) -> int | None:
        code = getattr(exc, "code", None)
        return code if isinstance(code, int) else None

    def close(self) -> None:
        self._client.close()
