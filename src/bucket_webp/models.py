"""Domain models for bucket conversion runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Union

from .errors import error_code


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    key: str
    size: int = 0


@dataclass(frozen=True, slots=True)
class ListPage:
    """One response of the paginated listing API."""

    objects: list[ObjectSummary] = field(default_factory=list)
    is_truncated: bool = False
    next_token: str | None = None


@dataclass(frozen=True, slots=True)
class KeyPage:
    """Filtered keys from one listing page, ready for scheduling."""

    index: int
    listed: int
    keys: list[str]


@dataclass(frozen=True, slots=True)
class Skipped:
    status: ClassVar[str] = "skipped"

    key: str
    target_key: str
    reason: str


@dataclass(frozen=True, slots=True)
class Converted:
    status: ClassVar[str] = "converted"

    key: str
    target_key: str
    original_size: int
    converted_size: int


@dataclass(frozen=True, slots=True)
class Failed:
    status: ClassVar[str] = "failed"

    key: str
    cause: BaseException

    @property
    def error_code(self) -> str:
        return error_code(self.cause)


@dataclass(frozen=True, slots=True)
class DryRunPlanned:
    status: ClassVar[str] = "dry_run"

    key: str
    target_key: str


TaskOutcome = Union[Skipped, Converted, Failed, DryRunPlanned]


@dataclass(frozen=True, slots=True)
class FailureSummary:
    failed_keys: tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.failed_keys)


__all__ = [
    "Converted",
    "DryRunPlanned",
    "Failed",
    "FailureSummary",
    "KeyPage",
    "ListPage",
    "ObjectSummary",
    "Skipped",
    "TaskOutcome",
]
