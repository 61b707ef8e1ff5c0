"""Blob addressing and signed-URL access policies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

DEFAULT_SIGNED_URL_WIDTH_MINUTES = 3600


class Permission(str, Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class BlobReference:
    """Addresses exactly one object within a provider account."""

    container: str
    path: str

    def __post_init__(self) -> None:
        if not self.container:
            raise ValueError("container is required")
        if not self.path:
            raise ValueError("path is required")


@dataclass(frozen=True, slots=True)
class AccessPolicy:
    """Time window and permission granted by a signed URL."""

    permission: Permission
    starts_on: datetime
    expires_on: datetime
    issued_at: datetime

    def __post_init__(self) -> None:
        if self.expires_on <= self.starts_on:
            raise ValueError("expires_on must be later than starts_on")

    @property
    def lifetime_seconds(self) -> int:
        """Seconds from issue time until expiry."""
        return int((self.expires_on - self.issued_at).total_seconds())


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_access_policy(
    width_minutes: int = DEFAULT_SIGNED_URL_WIDTH_MINUTES,
    now: datetime | None = None,
    permission: Permission = Permission.READ,
) -> AccessPolicy:
    """Build the policy for a signed URL centred on ``now``.

    The window opens ``width_minutes`` before ``now`` and closes
    ``width_minutes`` after it, so a client whose clock lags the backend
    still gets a usable URL. The total validity is twice the width.

    Args:
        width_minutes: Distance of each bound from ``now``.
        now: Reference instant; defaults to the current UTC time. Naive
            datetimes are treated as UTC.
        permission: Access granted by the URL.

    Raises:
        ValueError: If ``width_minutes`` is not positive.
    """
    if width_minutes <= 0:
        raise ValueError("width_minutes must be positive")
    reference = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    width = timedelta(minutes=width_minutes)
    return AccessPolicy(
        permission=permission,
        starts_on=reference - width,
        expires_on=reference + width,
        issued_at=reference,
    )
