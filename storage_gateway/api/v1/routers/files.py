"""Storage API router.

Upload, read, metadata and text endpoints. Every response except a proxied
JSON download is a ``ResponseEnvelope``.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from python_multipart.exceptions import MultipartParseError
from starlette.requests import ClientDisconnect

from storage_gateway.api.v1.deps import get_storage
from storage_gateway.api.v1.schemas.envelope import (
    ResponseCode,
    envelope_response,
    failure,
    success,
)
from storage_gateway.common.config import Settings, get_settings
from storage_gateway.infra.storage.errors import (
    ForbiddenError,
    NotFoundError,
    StorageError,
)
from storage_gateway.services.storage_service import StorageService
from storage_gateway.services.multipart_stream import multipart_boundary
from storage_gateway.services.upload_pipeline import StreamingUploadPipeline

UPLOAD_API_ID = "api.desktop.upload.crash.log"

logger = logging.getLogger("http")

router = APIRouter()


def _missing_container(setting: str, api_id: str = "api.report") -> JSONResponse:
    logger.error("container setting %s is not configured", setting)
    return envelope_response(
        failure(
            ResponseCode.SERVER_ERROR,
            f"{setting} is not configured",
            api_id=api_id,
        )
    )


def _slug_to_path(slug: str, filename: str) -> str:
    """``reports__daily`` + ``a.json`` -> ``reports/daily/a.json``."""
    return f"{slug.replace('__', '/')}/{filename}"


def _content_disposition(request: Request) -> str | None:
    filename = request.headers.get("filename")
    if request.headers.get("content-disposition") == "attachment" and filename:
        return f"attachment;filename={filename}"
    return None


def _upload_client_error(errmsg: str) -> JSONResponse:
    return envelope_response(
        failure(ResponseCode.CLIENT_ERROR, errmsg, api_id=UPLOAD_API_ID),
        status_code=400,
    )


async def _request_body(
    request: Request, cancel_event: threading.Event
) -> AsyncIterator[bytes]:
    try:
        async for chunk in request.stream():
            yield chunk
    except ClientDisconnect:
        cancel_event.set()
        raise


@router.post(
    "/upload",
    summary="Stream multipart files to blob storage",
    description="Upload every file part of a multipart body into the upload container.",
)
async def upload(
    request: Request,
    device_id: str = Query(alias="deviceId", min_length=1),
    storage: StorageService = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    container = settings.UPLOAD_CONTAINER_NAME
    if not container:
        return _missing_container("UPLOAD_CONTAINER_NAME", UPLOAD_API_ID)

    boundary = multipart_boundary(request.headers.get("content-type"))
    if boundary is None:
        return _upload_client_error("Request body must be multipart/form-data")

    cancel_event = threading.Event()
    pipeline = StreamingUploadPipeline(
        storage,
        container,
        concurrency=settings.UPLOAD_CONCURRENCY,
        cancel_event=cancel_event,
    )
    try:
        outcome = await pipeline.upload_multipart(
            _request_body(request, cancel_event), boundary, device_id
        )
    except MultipartParseError as exc:
        logger.warning("malformed multipart body device_id=%s error=%s", device_id, exc)
        return _upload_client_error("Malformed multipart body")
    except ClientDisconnect:
        logger.warning("client disconnected during upload device_id=%s", device_id)
        return envelope_response(
            failure(ResponseCode.SERVER_ERROR, "Upload cancelled", api_id=UPLOAD_API_ID)
        )

    if outcome.error is None and not outcome.uploaded:
        return _upload_client_error("No file found in request")
    if outcome.error is None:
        return envelope_response(
            success({"message": "Successfully uploaded to blob"}, api_id=UPLOAD_API_ID)
        )
    if isinstance(outcome.error, ForbiddenError):
        return envelope_response(
            failure(
                ResponseCode.FORBIDDEN,
                "Unable to authorize to blob storage",
                api_id=UPLOAD_API_ID,
            )
        )
    return envelope_response(
        failure(
            ResponseCode.SERVER_ERROR,
            "Failed to upload to blob",
            api_id=UPLOAD_API_ID,
        )
    )


@router.get(
    "/fileread/{slug}/{filename}",
    summary="Read a report file",
    description=(
        "JSON files are streamed inline; any other file is answered with a "
        "signed URL. ``__`` in the slug stands for ``/``."
    ),
)
async def file_read(
    slug: str,
    filename: str,
    request: Request,
    storage: StorageService = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    container = settings.REPORTS_CONTAINER
    if not container:
        return _missing_container("REPORTS_CONTAINER")

    path = _slug_to_path(slug, filename)
    try:
        target = await storage.resolve_read(
            container, path, _content_disposition(request)
        )
    except NotFoundError:
        return envelope_response(failure(ResponseCode.CLIENT_ERROR, "Blob not found"))
    except StorageError:
        return envelope_response(
            failure(ResponseCode.SERVER_ERROR, "Failed to display blob")
        )

    if target.stream is not None:
        return StreamingResponse(target.stream, media_type="application/json")
    return envelope_response(success({"signedUrl": target.signed_url}))


@router.get(
    "/metadata",
    summary="Batch file properties",
    description="``fileNames`` is a JSON object mapping report names to blob paths.",
)
async def metadata(
    file_names: str = Query(alias="fileNames"),
    storage: StorageService = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    container = settings.REPORTS_CONTAINER
    if not container:
        return _missing_container("REPORTS_CONTAINER")

    try:
        requested = json.loads(file_names)
    except json.JSONDecodeError:
        requested = None
    if not isinstance(requested, dict) or not all(
        isinstance(path, str) and path for path in requested.values()
    ):
        return envelope_response(
            failure(
                ResponseCode.CLIENT_ERROR,
                "fileNames must be a JSON object of name to non-empty path",
            ),
            status_code=400,
        )

    try:
        outcomes = await storage.batch_get_properties(container, requested)
    except StorageError:
        return envelope_response(
            failure(ResponseCode.SERVER_ERROR, "Failed to fetch blob properties")
        )
    return envelope_response(
        success({name: outcome.to_dict() for name, outcome in outcomes.items()})
    )


@router.get(
    "/getfileastext/{lang}/{file_name}",
    summary="Read a label bundle as text",
)
async def file_as_text(
    lang: str,
    file_name: str,
    storage: StorageService = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    container = settings.LABELS_CONTAINER
    if not container:
        return _missing_container("LABELS_CONTAINER")

    try:
        text = await storage.text_download(container, file_name)
    except NotFoundError as exc:
        logger.warning("blob %s not found in container %s", file_name, container)
        return envelope_response(
            failure(
                ResponseCode.CLIENT_ERROR,
                "Blob not found",
                result={"statusCode": exc.status_code, "msg": exc.kind},
            )
        )
    except StorageError:
        return envelope_response(
            failure(ResponseCode.SERVER_ERROR, "Failed to read blob as text")
        )
    return envelope_response(success(text))
