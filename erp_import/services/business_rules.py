from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from ..models.candidate_row import CandidateRow
from .parsing import normalize_lookup

"""Batch duplicate checks shared by every import type.

Both passes only touch rows that are still candidates and only ever set
``skip_reason``; a row keeps the first reason it was given.
"""

__all__ = [
    "add_file_duplicate_skips",
    "candidate_keys",
    "fetch_existing_keys",
    "mark_existing",
    "unique_lower_set",
    "ValueGetter",
]

logger = logging.getLogger(__name__)

ValueGetter = Callable[[CandidateRow[Any]], str | None]


def unique_lower_set(values: Iterable[str]) -> list[str]:
    """Deduplicated lookup keys, first-seen order kept (stable query params)."""
    seen: dict[str, None] = {}
    for v in values:
        seen.setdefault(normalize_lookup(v), None)
    return list(seen)


def add_file_duplicate_skips(
    rows: Sequence[CandidateRow[Any]], get_value: ValueGetter, label: str
) -> int:
    """Skip every later occurrence of a case-insensitive key within the file.

    Rows with errors are ignored entirely (they neither win nor lose).
    Returns the number of rows newly marked as skipped.
    """
    first_seen: dict[str, int] = {}
    marked = 0
    for row in rows:
        if row.errors:
            continue
        value = get_value(row)
        if not value:
            continue
        key = normalize_lookup(value)
        first_row = first_seen.get(key)
        if first_row is not None:
            if row.skip_reason is None:
                row.skip_reason = (
                    f'{label} "{value}" is duplicated in the uploaded file (first at row {first_row})'
                )
                marked += 1
            continue
        first_seen[key] = row.row
    return marked


def fetch_existing_keys(cursor: Any, sql: str, params: Sequence[Any]) -> set[str]:
    """Run one lookup query whose first output column is a lowercased key."""
    cursor.execute(sql, tuple(params))
    return {str(r[0]) for r in cursor.fetchall() if r and r[0] is not None}


def candidate_keys(rows: Sequence[CandidateRow[Any]], get_value: ValueGetter) -> list[str]:
    return unique_lower_set(
        v for v in (get_value(r) for r in rows if r.is_candidate) if v
    )


def mark_existing(
    rows: Sequence[CandidateRow[Any]],
    get_value: ValueGetter,
    existing: set[str],
    label: str,
) -> int:
    """Skip candidates whose key is already persisted in the branch."""
    marked = 0
    for row in rows:
        if not row.is_candidate:
            continue
        value = get_value(row)
        if value and normalize_lookup(value) in existing:
            row.skip_reason = f'{label} "{value}" already exists in this branch'
            marked += 1
    if marked:
        logger.debug("%d row(s) skipped: %s already exists", marked, label)
    return marked
