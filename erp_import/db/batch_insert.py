from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import psycopg2

from ..models.candidate_row import CandidateRow, RowOutcome, RowState
from ..services.error_classifier import SKIPPED, Classification

"""Per-row savepoint insertion engine.

One outer transaction wraps the whole batch. Each queued row gets its own
savepoint:

    SAVEPOINT import_row_<n>
    <row writes>
    RELEASE SAVEPOINT import_row_<n>            -- success
    ROLLBACK TO SAVEPOINT import_row_<n>        -- failure: undo this row only
    RELEASE SAVEPOINT import_row_<n>

A row failure never aborts the batch; the outer transaction commits once at
the end. Connection-level failures (OperationalError / InterfaceError)
propagate: savepoint state is undefined at that point and the connection
context manager rolls the whole batch back.
"""

__all__ = [
    "BatchMetrics",
    "BatchResult",
    "RowInsertError",
    "attempt_insert",
    "insert_batch",
    "savepoint_name",
]

logger = logging.getLogger(__name__)


class RowInsertError(Exception):
    """Application-level failure of one row's writes (e.g. missing RETURNING id)."""


@dataclass(frozen=True)
class BatchMetrics:
    """Timing data for one insert_batch call."""
    batch_size: int  # queued rows
    inserted: int  # rows persisted
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass
class BatchResult:
    inserted_rows: int = 0
    outcomes: dict[int, RowOutcome] = field(default_factory=dict)  # row number -> outcome


def savepoint_name(row_number: int) -> str:
    return f"import_row_{int(row_number)}"


def attempt_insert(
    cursor: Any,
    savepoint: str,
    insert: Callable[[Any], None],
    classify: Callable[[BaseException], Classification],
) -> RowOutcome:
    """Run one row's writes inside a savepoint and return its outcome.

    Only database errors and RowInsertError are converted into outcomes;
    anything else (including connection loss) propagates.
    """
    cursor.execute(f"SAVEPOINT {savepoint}")
    try:
        insert(cursor)
    except (psycopg2.OperationalError, psycopg2.InterfaceError):
        raise
    except (psycopg2.DatabaseError, RowInsertError) as e:
        cursor.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
        cursor.execute(f"RELEASE SAVEPOINT {savepoint}")
        classified = classify(e)
        state = RowState.SKIPPED if classified.kind == SKIPPED else RowState.FAILED
        return RowOutcome(state=state, reason=classified.reason)
    cursor.execute(f"RELEASE SAVEPOINT {savepoint}")
    return RowOutcome(state=RowState.INSERTED)


def insert_batch(
    connection: Any,
    rows: Sequence[CandidateRow[Any]],
    insert_row: Callable[[Any, Any], None],
    classify: Callable[[BaseException], Classification],
    prepare: Callable[[Any], None] | None = None,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
    progress: Any = None,
) -> BatchResult:
    """Insert every queued row in one transaction with per-row savepoints.

    Parameters
    ----------
    connection: psycopg2 connection (autocommit off); ``with connection``
        commits on success and rolls back if an exception escapes
    rows: candidates that survived parsing and business checks
    insert_row: ``insert_row(cursor, data)`` performs the row's writes
    classify: maps a caught error to skipped / failed
    prepare: optional ``prepare(cursor)`` run once before the loop, outside
        any row savepoint (e.g. creating a shared default category)
    metrics_callback: receives BatchMetrics after the loop finishes
    progress: optional tracker with ``advance()``; called once per row
    """
    result = BatchResult()
    if not rows:
        return result

    start_time = time.time()
    with connection:
        with connection.cursor() as cursor:
            if prepare is not None:
                prepare(cursor)
            for candidate in rows:
                outcome = attempt_insert(
                    cursor,
                    savepoint_name(candidate.row),
                    lambda cur, data=candidate.data: insert_row(cur, data),
                    classify,
                )
                result.outcomes[candidate.row] = outcome
                if outcome.state is RowState.INSERTED:
                    result.inserted_rows += 1
                elif outcome.state is RowState.SKIPPED:
                    logger.info("row=%d skipped at insert: %s", candidate.row, outcome.reason)
                else:
                    logger.warning("row=%d failed at insert: %s", candidate.row, outcome.reason)
                if progress is not None:
                    progress.advance()
    end_time = time.time()

    if metrics_callback is not None:
        metrics_callback(
            BatchMetrics(
                batch_size=len(rows),
                inserted=result.inserted_rows,
                elapsed_seconds=end_time - start_time,
                start_time=start_time,
                end_time=end_time,
            )
        )
    return result
