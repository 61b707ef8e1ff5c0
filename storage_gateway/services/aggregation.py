"""Concurrent property lookups joined without failing fast.

A batch of lookups always settles completely: each entry ends up as either a
``PropertyResult`` or a ``PropertyError`` and one failure never hides the
others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Iterable, Mapping, TypeVar, Union

from storage_gateway.infra.storage.client import ObjectProperties
from storage_gateway.infra.storage.errors import classify

T = TypeVar("T")


@dataclass(frozen=True)
class Settled(Generic[T]):
    """Outcome of one awaitable: exactly one of ``value`` / ``error`` is meaningful."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(awaitables: Iterable[Awaitable[T]]) -> list[Settled[T]]:
    """Await every item concurrently and capture each outcome in input order.

    Cancellation of a member is re-raised rather than captured.
    """
    outcomes = await asyncio.gather(*awaitables, return_exceptions=True)
    settled: list[Settled[T]] = []
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            settled.append(Settled(error=outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            settled.append(Settled(value=outcome))
    return settled


@dataclass(frozen=True, slots=True)
class PropertyResult:
    logical_name: str
    path: str
    last_modified: int
    size_bytes: int
    status_code: int = 200

    def to_dict(self) -> dict[str, Any]:
        return {
            "reportname": self.logical_name,
            "filename": self.path,
            "lastModified": self.last_modified,
            "sizeBytes": self.size_bytes,
            "statusCode": self.status_code,
        }


@dataclass(frozen=True, slots=True)
class PropertyError:
    logical_name: str
    path: str
    status_code: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "reportname": self.logical_name,
            "filename": self.path,
            "statusCode": self.status_code,
            "msg": self.message,
        }


PropertyOutcome = Union[PropertyResult, PropertyError]


def epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


async def aggregate_properties(
    lookup: Callable[[str], Awaitable[ObjectProperties]],
    names_to_paths: Mapping[str, str],
) -> dict[str, PropertyOutcome]:
    """Look up every path concurrently and key the outcomes by logical name.

    Args:
        lookup: Coroutine function fetching the properties of one path.
        names_to_paths: Logical name to blob path, all in one container.

    Returns:
        Mapping in input order. Failed lookups become ``PropertyError``
        entries carrying the classified status code.
    """
    names = list(names_to_paths)
    outcomes = await settle_all(lookup(names_to_paths[name]) for name in names)

    results: dict[str, PropertyOutcome] = {}
    for name, outcome in zip(names, outcomes):
        path = names_to_paths[name]
        if outcome.error is None and outcome.value is not None:
            results[name] = PropertyResult(
                logical_name=name,
                path=path,
                last_modified=epoch_millis(outcome.value.last_modified),
                size_bytes=outcome.value.size_bytes,
            )
        else:
            error = classify(outcome.error or RuntimeError("empty lookup result"))
            results[name] = PropertyError(
                logical_name=name,
                path=path,
                status_code=error.status_code,
                message=error.kind,
            )
    return results
