from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

"""Candidate row and row outcome models.

CandidateRow is the unit of work threaded through the pipeline:
parser -> business checks -> insertion engine.

State transitions per row:
    parsed -> (errors) failed
           -> checked -> (skip_reason) skipped
                      -> queued -> inserted | skipped | failed
"""

__all__ = [
    "CandidateRow",
    "ParseResult",
    "RowOutcome",
    "RowState",
]

T = TypeVar("T")


class RowState(Enum):
    """Closed set of states a queued row can end in."""
    INSERTED = "inserted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RowOutcome:
    state: RowState
    reason: str | None = None


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Output of a row parser.

    ``data`` is always populated (best-effort defaults on error) so that the
    preview can echo what was understood from the row.
    """
    data: T
    errors: list[str]


@dataclass
class CandidateRow(Generic[T]):
    """Mutable work unit. ``skip_reason`` is only set by checks or insertion."""
    row: int
    raw: dict[str, Any]
    data: T
    errors: list[str] = field(default_factory=list)
    skip_reason: str | None = None

    @property
    def is_candidate(self) -> bool:
        """True while the row is still eligible for insertion."""
        return not self.errors and self.skip_reason is None
