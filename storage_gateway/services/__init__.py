from .aggregation import (
    PropertyError,
    PropertyResult,
    Settled,
    aggregate_properties,
    settle_all,
)
from .factory import ADAPTERS, from_settings, init
from .storage_service import ReadTarget, StorageService
from .upload_pipeline import (
    ProgressReader,
    StreamingUploadPipeline,
    UploadOutcome,
    UploadPart,
    destination_for,
)

__all__ = [
    "ADAPTERS",
    "ProgressReader",
    "PropertyError",
    "PropertyResult",
    "ReadTarget",
    "Settled",
    "StorageService",
    "StreamingUploadPipeline",
    "UploadOutcome",
    "UploadPart",
    "aggregate_properties",
    "destination_for",
    "from_settings",
    "init",
    "settle_all",
]
