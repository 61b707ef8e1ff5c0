"""Tests for S3 storage client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from storage_gateway.common.config import StorageConfig
from storage_gateway.infra.storage.errors import StorageError
from storage_gateway.infra.storage.policy import Permission, compute_access_policy
from storage_gateway.infra.storage.s3_client import S3StorageClient


def _client_error(status: int, code: str) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": "boom"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        "HeadObject",
    )


class TestS3StorageClient:
    """Test S3StorageClient implementation."""

    @pytest.fixture
    def mock_s3(self):
        """Mock boto3 S3 client."""
        mock_client = MagicMock()
        mock_client.meta.endpoint_url = "https://s3.us-east-1.amazonaws.com"
        with patch.object(S3StorageClient, "_build_client", return_value=mock_client):
            yield mock_client

    @pytest.fixture
    def config(self):
        return StorageConfig(
            provider="aws",
            identity="AKIATEST",
            credential="test-secret",
            region="us-east-1",
        )

    @pytest.fixture
    def client(self, mock_s3, config):
        """Create S3StorageClient with mocked boto3."""
        return S3StorageClient(config=config, chunk_size=8)

    def test_head_object(self, client, mock_s3):
        modified = datetime(2024, 1, 1, tzinfo=timezone.utc)
        mock_s3.head_object.return_value = {
            "LastModified": modified,
            "ContentLength": 1024,
        }

        props = client.head_object(container="bucket", path="a/b.json")

        assert props.last_modified == modified
        assert props.size_bytes == 1024
        mock_s3.head_object.assert_called_once_with(Bucket="bucket", Key="a/b.json")

    def test_open_download_closes_body(self, client, mock_s3):
        body = MagicMock()
        body.iter_chunks.return_value = iter([b"abc", b"def"])
        mock_s3.get_object.return_value = {"Body": body}

        chunks = list(client.open_download(container="bucket", path="k"))

        assert chunks == [b"abc", b"def"]
        body.iter_chunks.assert_called_once_with(chunk_size=8)
        body.close.assert_called_once()

    def test_upload_stream_uses_transfer_config(self, client, mock_s3):
        source = MagicMock()

        client.upload_stream(
            container="bucket", path="k", source=source, size=10, concurrency=3
        )

        args, kwargs = mock_s3.upload_fileobj.call_args
        assert args == (source, "bucket", "k")
        assert kwargs["Config"].max_concurrency == 3

    def test_sign_returns_query_token(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = (
            "https://s3.us-east-1.amazonaws.com/bucket/k?X-Amz-Signature=abc&X-Amz-Expires=3600"
        )
        policy = compute_access_policy(
            60, now=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

        token = client.sign(
            container="bucket",
            path="k",
            policy=policy,
            headers={"content_disposition": "attachment;filename=k"},
        )

        assert token == "X-Amz-Signature=abc&X-Amz-Expires=3600"
        mock_s3.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={
                "Bucket": "bucket",
                "Key": "k",
                "ResponseContentDisposition": "attachment;filename=k",
            },
            ExpiresIn=3600,
        )

    def test_sign_write_uses_put_object(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = "https://host/bucket/k?sig=1"
        policy = compute_access_policy(5, permission=Permission.WRITE)

        client.sign(container="bucket", path="k", policy=policy)

        assert mock_s3.generate_presigned_url.call_args.args[0] == "put_object"

    def test_sign_empty_url_raises(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = ""

        with pytest.raises(StorageError):
            client.sign(container="bucket", path="k", policy=compute_access_policy(5))

    def test_object_url_is_path_style(self, client):
        assert (
            client.object_url(container="bucket", path="dir/my file.json")
            == "https://s3.us-east-1.amazonaws.com/bucket/dir/my%20file.json"
        )

    @pytest.mark.parametrize(
        ("status", "code", "expected"),
        [(404, "NoSuchKey", 404), (403, "AccessDenied", 403), (500, "InternalError", 500)],
    )
    def test_error_status_from_client_error(self, client, status, code, expected):
        assert client.error_status(_client_error(status, code)) == expected

    def test_error_status_falls_back_to_error_code(self, client):
        exc = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")

        assert client.error_status(exc) == 404

    def test_error_status_unknown_exception(self, client):
        assert client.error_status(RuntimeError("x")) is None
