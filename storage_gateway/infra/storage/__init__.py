"""Object storage abstraction layer.

This package provides a protocol-based abstraction over cloud object stores
(Azure Blob, AWS S3, Google Cloud Storage, OCI Object Storage) together with
the canonical errors, access policies and text decoding shared by all of them.
"""

from .client import (
    ALL_CAPABILITIES,
    Capability,
    ObjectProperties,
    ObjectStoreClient,
)
from .decoding import ChunkedTextDecoder
from .errors import (
    CapabilityNotSupportedError,
    ConfigurationError,
    ForbiddenError,
    NotFoundError,
    ServerError,
    StorageError,
    UploadCancelledError,
    classify,
)
from .policy import AccessPolicy, BlobReference, Permission, compute_access_policy

__all__ = [
    "ALL_CAPABILITIES",
    "AccessPolicy",
    "BlobReference",
    "Capability",
    "CapabilityNotSupportedError",
    "ChunkedTextDecoder",
    "ConfigurationError",
    "ForbiddenError",
    "NotFoundError",
    "ObjectProperties",
    "ObjectStoreClient",
    "Permission",
    "ServerError",
    "StorageError",
    "UploadCancelledError",
    "classify",
    "compute_access_policy",
]
