from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from storage_gateway.api.v1.schemas.envelope import (
    ResponseCode,
    envelope_response,
    failure,
    format_timestamp,
    from_error,
    success,
)
from storage_gateway.infra.storage.errors import (
    ForbiddenError,
    NotFoundError,
    ServerError,
)


def test_success_envelope_shape():
    envelope = success({"signedUrl": "https://x"})

    assert envelope.id == "api.report"
    assert envelope.ver == "1.0"
    assert envelope.responseCode is ResponseCode.OK
    assert envelope.params.status == "success"
    assert envelope.params.err is None
    assert envelope.params.errmsg is None
    assert envelope.params.msgid is None
    assert uuid.UUID(envelope.params.resmsgid).version == 1
    assert envelope.http_status == 200


def test_failure_defaults_result_to_empty_object():
    envelope = failure(ResponseCode.SERVER_ERROR, "Failed to upload to blob")

    assert envelope.result == {}
    assert envelope.params.status == "failed"
    assert envelope.params.err is ResponseCode.SERVER_ERROR
    assert envelope.http_status == 500


def test_failure_rejects_ok_code():
    with pytest.raises(ValueError):
        failure(ResponseCode.OK, "nope")


def test_envelope_is_immutable():
    envelope = success("text")

    with pytest.raises(ValidationError):
        envelope.result = "changed"  # type: ignore[misc]


@pytest.mark.parametrize(
    ("error", "code", "status"),
    [
        (NotFoundError("x"), ResponseCode.CLIENT_ERROR, 404),
        (ForbiddenError("x"), ResponseCode.FORBIDDEN, 403),
        (ServerError("x"), ResponseCode.SERVER_ERROR, 500),
    ],
)
def test_from_error_maps_kind_to_code(error, code, status):
    envelope = from_error(error, "msg")

    assert envelope.responseCode is code
    assert envelope.http_status == status
    assert envelope.params.errmsg == "msg"


def test_format_timestamp_layout():
    moment = datetime(
        2024, 3, 5, 7, 8, 9, 45000, tzinfo=timezone(timedelta(hours=5, minutes=30))
    )

    stamp = format_timestamp(moment)

    assert re.match(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}:045[+-]\d{4}$", stamp)
    local = moment.astimezone()
    assert stamp.startswith(f"{local:%Y-%m-%d %H:%M:%S}")


def test_envelope_response_serializes_and_overrides_status():
    response = envelope_response(failure(ResponseCode.CLIENT_ERROR, "bad"), status_code=400)

    assert response.status_code == 400
    body = json.loads(response.body)
    assert body["responseCode"] == "CLIENT_ERROR"
    assert body["params"]["err"] == "CLIENT_ERROR"
    assert set(body) == {"id", "ver", "ts", "params", "responseCode", "result"}
