from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from storage_gateway.infra.storage.errors import ConfigurationError

ENV_FILE = Path(".env")


class Provider(str, Enum):
    AZURE = "azure"
    AWS = "aws"
    GCLOUD = "gcloud"
    OCI = "oci"


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_int(name: str, value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


@dataclass(frozen=True)
class StorageConfig:
    """Validated connection settings for one storage provider.

    ``identity`` and ``credential`` mean different things per provider:
    account name and key for Azure, access key pair for AWS and OCI,
    service account email and PEM private key for Google Cloud.
    """

    provider: Provider
    identity: str
    credential: str = field(repr=False)
    reports_container: str | None = None
    labels_container: str | None = None
    upload_container_name: str | None = None
    region: str | None = None
    endpoint: str | None = None
    project_id: str | None = None

    def __post_init__(self) -> None:
        try:
            provider = Provider(self.provider)
        except ValueError:
            raise ConfigurationError(
                f"Client Cloud Service - {self.provider} provider is not supported"
            ) from None
        object.__setattr__(self, "provider", provider)

        if not self.identity or not self.credential:
            raise ConfigurationError(
                f"{provider.value} storage: identity and credential are required"
            )
        if provider is Provider.OCI and not self.endpoint:
            raise ConfigurationError("oci storage: endpoint is required")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "StorageConfig":
        """Build from a loosely-typed mapping such as a parsed config file.

        Accepts both snake_case keys and the camelCase keys used by older
        deployments (``reportsContainer``, ``uploadContainerName``...).
        """

        def pick(*keys: str) -> Any:
            for key in keys:
                value = raw.get(key)
                if value not in (None, ""):
                    return value
            return None

        provider = pick("provider")
        if provider is None:
            raise ConfigurationError("provider is required")
        return cls(
            provider=provider,
            identity=pick("identity") or "",
            credential=pick("credential") or "",
            reports_container=pick("reports_container", "reportsContainer"),
            labels_container=pick("labels_container", "labelsContainer"),
            upload_container_name=pick(
                "upload_container_name", "uploadContainerName"
            ),
            region=pick("region"),
            endpoint=pick("endpoint"),
            project_id=pick("project_id", "projectId"),
        )


@dataclass
class Settings:
    STORAGE_PROVIDER: str | None = None
    STORAGE_IDENTITY: str | None = None
    STORAGE_CREDENTIAL: str | None = field(default=None, repr=False)
    STORAGE_REGION: str | None = None
    STORAGE_ENDPOINT: str | None = None
    STORAGE_PROJECT_ID: str | None = None
    REPORTS_CONTAINER: str | None = None
    LABELS_CONTAINER: str | None = None
    UPLOAD_CONTAINER_NAME: str | None = None
    SIGNED_URL_WIDTH_MINUTES: int = 3600
    UPLOAD_CONCURRENCY: int = 5
    DOWNLOAD_CHUNK_SIZE: int = 4 * 1024 * 1024
    ENABLE_METRICS: bool = True
    API_KEY_ENABLED: bool = False
    API_KEY: str | None = field(default=None, repr=False)
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.SIGNED_URL_WIDTH_MINUTES <= 0:
            raise ConfigurationError("SIGNED_URL_WIDTH_MINUTES must be positive")
        if self.UPLOAD_CONCURRENCY <= 0:
            raise ConfigurationError("UPLOAD_CONCURRENCY must be positive")
        if self.DOWNLOAD_CHUNK_SIZE <= 0:
            raise ConfigurationError("DOWNLOAD_CHUNK_SIZE must be positive")

    def storage_config(self) -> StorageConfig:
        if not self.STORAGE_PROVIDER:
            raise ConfigurationError("STORAGE_PROVIDER is required")
        return StorageConfig(
            provider=self.STORAGE_PROVIDER.strip().lower(),
            identity=self.STORAGE_IDENTITY or "",
            credential=self.STORAGE_CREDENTIAL or "",
            reports_container=self.REPORTS_CONTAINER,
            labels_container=self.LABELS_CONTAINER,
            upload_container_name=self.UPLOAD_CONTAINER_NAME,
            region=self.STORAGE_REGION,
            endpoint=self.STORAGE_ENDPOINT,
            project_id=self.STORAGE_PROJECT_ID,
        )

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            STORAGE_PROVIDER=os.environ.get("STORAGE_PROVIDER"),
            STORAGE_IDENTITY=os.environ.get("STORAGE_IDENTITY"),
            STORAGE_CREDENTIAL=os.environ.get("STORAGE_CREDENTIAL"),
            STORAGE_REGION=os.environ.get("STORAGE_REGION"),
            STORAGE_ENDPOINT=os.environ.get("STORAGE_ENDPOINT"),
            STORAGE_PROJECT_ID=os.environ.get("STORAGE_PROJECT_ID"),
            REPORTS_CONTAINER=os.environ.get("REPORTS_CONTAINER"),
            LABELS_CONTAINER=os.environ.get("LABELS_CONTAINER"),
            UPLOAD_CONTAINER_NAME=os.environ.get("UPLOAD_CONTAINER_NAME"),
            SIGNED_URL_WIDTH_MINUTES=_as_int(
                "SIGNED_URL_WIDTH_MINUTES",
                os.environ.get("SIGNED_URL_WIDTH_MINUTES"),
                cls.SIGNED_URL_WIDTH_MINUTES,
            ),
            UPLOAD_CONCURRENCY=_as_int(
                "UPLOAD_CONCURRENCY",
                os.environ.get("UPLOAD_CONCURRENCY"),
                cls.UPLOAD_CONCURRENCY,
            ),
            DOWNLOAD_CHUNK_SIZE=_as_int(
                "DOWNLOAD_CHUNK_SIZE",
                os.environ.get("DOWNLOAD_CHUNK_SIZE"),
                cls.DOWNLOAD_CHUNK_SIZE,
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            API_KEY_ENABLED=_as_bool(
                os.environ.get("API_KEY_ENABLED"), cls.API_KEY_ENABLED
            ),
            API_KEY=os.environ.get("API_KEY"),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
