"""Canonical storage errors and the classifier that produces them.

Provider SDKs raise errors of very different shapes. Everything that leaves
the storage layer is one of the canonical kinds below, so callers only ever
branch on ``NotFoundError``, ``ForbiddenError`` and ``ServerError``.
"""

from __future__ import annotations

SENSITIVE_ATTRIBUTES: tuple[str, ...] = ("request", "response", "details")
MAX_MESSAGE_LENGTH = 256


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""

    status_code: int = 500
    kind: str = "ServerError"


class ConfigurationError(StorageError):
    """Raised when the storage service cannot be constructed from its config."""

    kind = "ConfigurationError"


class NotFoundError(StorageError):
    """The backing store reports that the object does not exist."""

    status_code = 404
    kind = "NotFound"


class ForbiddenError(StorageError):
    """The backing store rejected the credentials for this operation."""

    status_code = 403
    kind = "Forbidden"


class ServerError(StorageError):
    """Any other failure, including SDK-internal exceptions."""

    status_code = 500
    kind = "ServerError"


class CapabilityNotSupportedError(StorageError, NotImplementedError):
    """The configured adapter does not implement the requested operation."""

    status_code = 501
    kind = "NotImplemented"


class UploadCancelledError(StorageError):
    """The caller cancelled an upload while its source was being consumed."""

    kind = "Cancelled"


def scrub(exc: BaseException) -> BaseException:
    """Drop raw request/response/detail payloads attached to an SDK error.

    These attributes routinely carry signed headers, account keys and large
    binary bodies. The exception is modified in place and returned.
    """
    attributes = getattr(exc, "__dict__", None)
    if attributes is None:
        return exc
    for name in SENSITIVE_ATTRIBUTES:
        if name in attributes:
            attributes[name] = None
    return exc


def _summarize(exc: BaseException) -> str:
    message = str(exc).splitlines()[0] if str(exc) else ""
    if len(message) > MAX_MESSAGE_LENGTH:
        message = message[:MAX_MESSAGE_LENGTH] + "...<truncated>"
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


def classify(exc: BaseException, status: int | None = None) -> StorageError:
    """Map a raised error onto one of the canonical kinds.

    Args:
        exc: The error raised by an adapter or SDK.
        status: The backing-store HTTP status, when the adapter could
            extract one from ``exc``.

    Returns:
        A canonical ``StorageError``. Errors that are already canonical are
        returned unchanged.
    """
    if isinstance(exc, StorageError):
        return exc

    scrub(exc)
    summary = _summarize(exc)
    if status == 404:
        error: StorageError = NotFoundError(summary)
    elif status == 403:
        error = ForbiddenError(summary)
    else:
        error = ServerError(summary)
    error.__cause__ = exc
    return error
