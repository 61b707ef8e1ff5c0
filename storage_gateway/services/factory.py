"""Builds the storage service for the configured provider."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from storage_gateway.common.config import Provider, Settings, StorageConfig
from storage_gateway.infra.storage.azure_client import AzureBlobClient
from storage_gateway.infra.storage.client import DEFAULT_CHUNK_SIZE, ObjectStoreClient
from storage_gateway.infra.storage.errors import ConfigurationError, scrub
from storage_gateway.infra.storage.gcs_client import GCSStorageClient
from storage_gateway.infra.storage.oci_client import OCIStorageClient
from storage_gateway.infra.storage.policy import DEFAULT_SIGNED_URL_WIDTH_MINUTES
from storage_gateway.infra.storage.s3_client import S3StorageClient
from storage_gateway.services.storage_service import StorageService
from storage_gateway.services.upload_pipeline import DEFAULT_UPLOAD_CONCURRENCY

logger = logging.getLogger("storage.factory")

AdapterBuilder = Callable[..., ObjectStoreClient]

ADAPTERS: dict[Provider, AdapterBuilder] = {
    Provider.AZURE: AzureBlobClient,
    Provider.AWS: S3StorageClient,
    Provider.GCLOUD: GCSStorageClient,
    Provider.OCI: OCIStorageClient,
}


def init(
    config: StorageConfig | Mapping[str, Any],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    signed_url_width_minutes: int = DEFAULT_SIGNED_URL_WIDTH_MINUTES,
    upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY,
) -> StorageService:
    """Select and construct the adapter for ``config.provider``.

    The returned service owns the provider client for the lifetime of the
    process; call ``StorageService.close`` on shutdown.

    Raises:
        ConfigurationError: If the config is invalid, the provider is not
            supported, or the provider client cannot be created.
    """
    if not isinstance(config, StorageConfig):
        config = StorageConfig.from_mapping(config)

    builder = ADAPTERS.get(config.provider)
    if builder is None:
        raise ConfigurationError(
            f"Client Cloud Service - {config.provider} provider is not supported"
        )

    try:
        adapter = builder(config=config, chunk_size=chunk_size)
    except ConfigurationError:
        raise
    except Exception as exc:
        scrub(exc)
        logger.error(
            "Unable to create %s storage client: %s",
            config.provider.value,
            type(exc).__name__,
        )
        raise ConfigurationError(
            f"Unable to create {config.provider.value} storage client"
        ) from exc

    logger.info("Storage client initialised for provider %s", config.provider.value)
    return StorageService(
        adapter,
        signed_url_width_minutes=signed_url_width_minutes,
        upload_concurrency=upload_concurrency,
    )


def from_settings(settings: Settings) -> StorageService:
    return init(
        settings.storage_config(),
        chunk_size=settings.DOWNLOAD_CHUNK_SIZE,
        signed_url_width_minutes=settings.SIGNED_URL_WIDTH_MINUTES,
        upload_concurrency=settings.UPLOAD_CONCURRENCY,
    )
