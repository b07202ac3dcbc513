"""Outcome values for fallible pipeline steps.

Fetch steps return ``Success`` or ``Failure`` instead of raising, so the
"never raises past this boundary" contract is visible in the signature.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeAlias, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Failure:
    """A step that degraded; ``reason`` is a human-readable diagnostic."""

    reason: str

    @property
    def ok(self) -> bool:
        return False


FeedRecords: TypeAlias = list[dict[str, Any]]
FeedOutcome: TypeAlias = Success[FeedRecords] | Failure


def records_or_empty(outcome: FeedOutcome) -> FeedRecords:
    """Unwrap a feed outcome, degrading a failure to an empty list."""
    if isinstance(outcome, Success):
        return outcome.value
    return []
