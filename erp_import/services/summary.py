from __future__ import annotations

from collections.abc import Iterable, Mapping

from ..models.import_types import ImportMode, ImportType
from ..models.summary import ImportRowError, ImportRowSkip, ImportSummary, PreviewRow

"""Summary building and SUMMARY line rendering.

build_summary assembles the ImportSummary returned to callers;
render_summary_line produces the one-line form written to the log.
"""

__all__ = [
    "DEFAULT_DETAIL_LIMIT",
    "DEFAULT_PREVIEW_LIMIT",
    "build_summary",
    "render_summary_line",
]

DEFAULT_DETAIL_LIMIT = 200
DEFAULT_PREVIEW_LIMIT = 200


def build_summary(
    import_type: ImportType,
    mode: ImportMode,
    failed_rows: Iterable[ImportRowError],
    skipped_rows: Iterable[ImportRowSkip],
    preview_map: Mapping[int, PreviewRow],
    total_rows: int,
    valid_count: int,
    inserted_count: int,
    detail_limit: int = DEFAULT_DETAIL_LIMIT,
    preview_limit: int = DEFAULT_PREVIEW_LIMIT,
) -> ImportSummary:
    """Build the run summary.

    Args:
        import_type: entity kind of the run
        mode: preview / import
        failed_rows: every failed row, parse-time and insert-time
        skipped_rows: every skipped row, check-time and insert-time
        preview_map: final classification per row number (last write wins)
        total_rows: non-blank rows read from the file
        valid_count: rows that survived parsing and checks
        inserted_count: rows committed (always 0 in preview mode)
        detail_limit: cap for failed_rows / skipped_rows
        preview_limit: cap for preview_rows

    Returns:
        ImportSummary whose counts are exact and whose lists are sorted by
        row number and truncated to their caps.
    """
    failed = sorted(failed_rows, key=lambda r: r.row)
    skipped = sorted(skipped_rows, key=lambda r: r.row)
    preview = [preview_map[k] for k in sorted(preview_map)]
    return ImportSummary(
        import_type=import_type,
        mode=mode,
        total_rows=total_rows,
        valid_count=valid_count,
        inserted_count=inserted_count,
        failed_count=len(failed),
        skipped_count=len(skipped),
        failed_rows=tuple(failed[: max(detail_limit, 0)]),
        skipped_rows=tuple(skipped[: max(detail_limit, 0)]),
        preview_rows=tuple(preview[: max(preview_limit, 0)]),
    )


def render_summary_line(summary: ImportSummary) -> str:
    """Render the SUMMARY log line.

    Examples:
        >>> s = build_summary(ImportType.CUSTOMERS, ImportMode.PREVIEW, [], [], {}, 0, 0, 0)
        >>> render_summary_line(s)
        'SUMMARY import=customers mode=preview total=0 valid=0 inserted=0 failed=0 skipped=0'
    """
    return (
        f"SUMMARY import={summary.import_type.value} "
        f"mode={summary.mode.value} "
        f"total={summary.total_rows} "
        f"valid={summary.valid_count} "
        f"inserted={summary.inserted_count} "
        f"failed={summary.failed_count} "
        f"skipped={summary.skipped_count}"
    )
