"""Canonical response envelope returned by every storage endpoint."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from storage_gateway.infra.storage.errors import (
    ForbiddenError,
    NotFoundError,
    StorageError,
)

DEFAULT_API_ID = "api.report"
API_VERSION = "1.0"


class ResponseCode(str, Enum):
    OK = "OK"
    CLIENT_ERROR = "CLIENT_ERROR"
    FORBIDDEN = "FORBIDDEN"
    SERVER_ERROR = "SERVER_ERROR"


HTTP_STATUS_BY_CODE: dict[ResponseCode, int] = {
    ResponseCode.OK: 200,
    ResponseCode.CLIENT_ERROR: 404,
    ResponseCode.FORBIDDEN: 403,
    ResponseCode.SERVER_ERROR: 500,
}


class ResponseParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    resmsgid: str
    msgid: None = None
    status: Literal["success", "failed"]
    err: ResponseCode | None = None
    errmsg: str | None = None


class ResponseEnvelope(BaseModel):
    """Immutable wire envelope: ``{id, ver, ts, params, responseCode, result}``."""

    model_config = ConfigDict(frozen=True)

    id: str
    ver: str = API_VERSION
    ts: str
    params: ResponseParams
    responseCode: ResponseCode
    result: Any = None

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE[self.responseCode]


def format_timestamp(moment: datetime | None = None) -> str:
    """Format as ``YYYY-MM-DD HH:MM:SS:mmm+ZZZZ`` in local time."""
    value = (moment or datetime.now()).astimezone()
    millis = value.microsecond // 1000
    return f"{value:%Y-%m-%d %H:%M:%S}:{millis:03d}{value:%z}"


def _build(
    code: ResponseCode,
    result: Any,
    errmsg: str | None,
    api_id: str,
) -> ResponseEnvelope:
    failed = code is not ResponseCode.OK
    return ResponseEnvelope(
        id=api_id,
        ts=format_timestamp(),
        params=ResponseParams(
            resmsgid=str(uuid.uuid1()),
            status="failed" if failed else "success",
            err=code if failed else None,
            errmsg=errmsg if failed else None,
        ),
        responseCode=code,
        result=result,
    )


def success(result: Any, api_id: str = DEFAULT_API_ID) -> ResponseEnvelope:
    return _build(ResponseCode.OK, result, None, api_id)


def failure(
    code: ResponseCode,
    errmsg: str,
    result: Any = None,
    api_id: str = DEFAULT_API_ID,
) -> ResponseEnvelope:
    if code is ResponseCode.OK:
        raise ValueError("failure envelopes need an error response code")
    return _build(code, {} if result is None else result, errmsg, api_id)


def response_code_for(error: StorageError) -> ResponseCode:
    if isinstance(error, NotFoundError):
        return ResponseCode.CLIENT_ERROR
    if isinstance(error, ForbiddenError):
        return ResponseCode.FORBIDDEN
    return ResponseCode.SERVER_ERROR


def from_error(
    error: StorageError,
    errmsg: str | None = None,
    result: Any = None,
    api_id: str = DEFAULT_API_ID,
) -> ResponseEnvelope:
    return failure(response_code_for(error), errmsg or str(error), result, api_id)


def envelope_response(
    envelope: ResponseEnvelope, status_code: int | None = None
) -> JSONResponse:
    """Serialize ``envelope``; the HTTP status mirrors ``responseCode`` by default."""
    return JSONResponse(
        status_code=status_code or envelope.http_status,
        content=envelope.model_dump(mode="json"),
    )
