from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from storage_gateway.common.config import Provider, Settings
from storage_gateway.infra.storage.azure_client import AzureBlobClient
from storage_gateway.infra.storage.errors import ConfigurationError
from storage_gateway.infra.storage.gcs_client import GCSStorageClient
from storage_gateway.infra.storage.oci_client import OCIStorageClient
from storage_gateway.infra.storage.s3_client import S3StorageClient
from storage_gateway.services import factory
from storage_gateway.services.storage_service import StorageService


@pytest.mark.parametrize(
    ("provider", "adapter_cls", "extra"),
    [
        ("azure", AzureBlobClient, {}),
        ("aws", S3StorageClient, {"region": "us-east-1"}),
        ("gcloud", GCSStorageClient, {"projectId": "p"}),
        ("oci", OCIStorageClient, {"endpoint": "https://ns.compat.example.com"}),
    ],
)
def test_init_selects_adapter_by_provider(provider, adapter_cls, extra):
    with patch.object(adapter_cls, "_build_client", return_value=MagicMock()):
        service = factory.init(
            {"provider": provider, "identity": "id", "credential": "secret", **extra}
        )

    assert isinstance(service, StorageService)
    assert service.provider == provider


def test_registry_covers_every_provider():
    assert set(factory.ADAPTERS) == set(Provider)


def test_unknown_provider_is_rejected():
    with pytest.raises(ConfigurationError) as excinfo:
        factory.init({"provider": "dropbox", "identity": "i", "credential": "c"})

    assert str(excinfo.value) == "Client Cloud Service - dropbox provider is not supported"


def test_missing_credentials_are_rejected():
    with pytest.raises(ConfigurationError):
        factory.init({"provider": "azure", "identity": "acct"})


def test_sdk_construction_failure_becomes_configuration_error():
    failure = ValueError("bad key material")
    failure.request = {"Authorization": "secret"}
    with patch.object(AzureBlobClient, "_build_client", side_effect=failure):
        with pytest.raises(ConfigurationError) as excinfo:
            factory.init({"provider": "azure", "identity": "i", "credential": "c"})

    assert excinfo.value.__cause__ is failure
    assert failure.request is None


def test_from_settings_passes_tuning_knobs():
    settings = Settings(
        STORAGE_PROVIDER="AZURE",
        STORAGE_IDENTITY="acct",
        STORAGE_CREDENTIAL="a2V5",
        SIGNED_URL_WIDTH_MINUTES=15,
        UPLOAD_CONCURRENCY=2,
        DOWNLOAD_CHUNK_SIZE=1024,
    )

    with patch.object(
        AzureBlobClient, "_build_client", return_value=MagicMock()
    ) as build:
        service = factory.from_settings(settings)

    assert service.provider == "azure"
    assert build.call_args.args[1] == 1024
    assert service._signed_url_width_minutes == 15
    assert service._upload_concurrency == 2
