from __future__ import annotations

import pytest

from storage_gateway.common.config import (
    Provider,
    Settings,
    StorageConfig,
    get_settings,
)
from storage_gateway.infra.storage.errors import ConfigurationError


def test_settings_from_environment():
    settings = get_settings()

    assert settings.STORAGE_PROVIDER == "azure"
    assert settings.REPORTS_CONTAINER == "reports"
    assert settings.SIGNED_URL_WIDTH_MINUTES == 3600
    assert settings.UPLOAD_CONCURRENCY == 5
    assert settings.storage_config().provider is Provider.AZURE


def test_credentials_are_not_in_repr():
    settings = get_settings()

    assert "dGVzdC1rZXk=" not in repr(settings)
    assert "dGVzdC1rZXk=" not in repr(settings.storage_config())


def test_numeric_overrides(monkeypatch):
    monkeypatch.setenv("SIGNED_URL_WIDTH_MINUTES", "15")
    monkeypatch.setenv("UPLOAD_CONCURRENCY", "8")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    settings = get_settings()

    assert settings.SIGNED_URL_WIDTH_MINUTES == 15
    assert settings.UPLOAD_CONCURRENCY == 8


@pytest.mark.parametrize(
    ("name", "value"),
    [("SIGNED_URL_WIDTH_MINUTES", "abc"), ("UPLOAD_CONCURRENCY", "0")],
)
def test_invalid_numbers_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    get_settings.cache_clear()  # type: ignore[attr-defined]

    with pytest.raises(ConfigurationError):
        get_settings()


def test_cors_origins_are_split(monkeypatch):
    monkeypatch.setenv("CORS_ENABLED", "yes")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    settings = get_settings()

    assert settings.CORS_ENABLED is True
    assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]


def test_storage_config_accepts_camel_case_keys():
    config = StorageConfig.from_mapping(
        {
            "provider": "aws",
            "identity": "AKIA",
            "credential": "secret",
            "reportsContainer": "reports",
            "uploadContainerName": "uploads",
        }
    )

    assert config.provider is Provider.AWS
    assert config.reports_container == "reports"
    assert config.upload_container_name == "uploads"


def test_oci_requires_endpoint():
    with pytest.raises(ConfigurationError, match="endpoint"):
        StorageConfig(provider="oci", identity="i", credential="c")


def test_unknown_provider_message():
    with pytest.raises(ConfigurationError) as excinfo:
        StorageConfig(provider="ibm", identity="i", credential="c")

    assert str(excinfo.value) == "Client Cloud Service - ibm provider is not supported"


def test_missing_provider_setting():
    with pytest.raises(ConfigurationError):
        Settings(STORAGE_IDENTITY="i", STORAGE_CREDENTIAL="c").storage_config()
