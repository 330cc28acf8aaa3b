from __future__ import annotations

import logging
from dataclasses import asdict
from functools import partial
from typing import Any

from ..db.batch_insert import BatchMetrics, BatchResult, insert_batch
from ..db.schema_shape import SchemaShapeResolver
from ..excel.reader import (
    BadInput,
    ensure_file_has_rows,
    ensure_required_headers,
    parse_spreadsheet,
)
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.candidate_row import CandidateRow, RowState
from ..models.config_models import ImportConfig
from ..models.import_types import ImportMode, ImportType
from ..models.summary import ImportRowError, ImportRowSkip, ImportSummary, PreviewRow
from .definition import ImportDefinition, coerce_import_type, coerce_mode, get_definition
from .error_classifier import classify
from .summary import build_summary

"""Import pipeline orchestration.

decode -> ensure rows / headers -> parse rows -> business checks ->
partition -> insert (import mode) -> error log (import mode) -> summary

File-level problems raise BadInput before any row is processed; row-level
problems only ever end up in the summary.
"""

__all__ = [
    "INVALID_ROW_MESSAGE",
    "process_import",
]

logger = logging.getLogger(__name__)

INVALID_ROW_MESSAGE = "Row is invalid"


def _ensure_branch_id(branch_id: Any) -> int:
    if isinstance(branch_id, bool) or not isinstance(branch_id, int) or branch_id <= 0:
        raise BadInput("branch_id must be a positive integer")
    return branch_id


def _run_checks(
    connection: Any,
    definition: ImportDefinition,
    candidates: list[CandidateRow[Any]],
    branch_id: int,
    resolver: SchemaShapeResolver,
) -> None:
    """Batched read-only checks; their implicit transaction is always rolled back."""
    try:
        with connection.cursor() as cursor:
            definition.apply_checks(cursor, candidates, branch_id, resolver)
    finally:
        connection.rollback()


def _write_error_log(
    directory: str,
    import_type: ImportType,
    branch_id: int,
    failed_rows: list[ImportRowError],
    skipped_rows: list[ImportRowSkip],
) -> None:
    buffer = ErrorLogBuffer(directory)
    for f in failed_rows:
        buffer.append(
            ErrorRecord.create(import_type.value, branch_id, f.row, "failed", "; ".join(f.errors))
        )
    for s in skipped_rows:
        buffer.append(ErrorRecord.create(import_type.value, branch_id, s.row, "skipped", s.reason))
    path = buffer.flush()
    if path is not None:
        logger.info("row error log written: %s (%d records)", path, len(failed_rows) + len(skipped_rows))


def process_import(
    import_type: ImportType | str,
    mode: ImportMode | str | None,
    branch_id: int,
    data: bytes,
    filename: str | None = None,
    *,
    connection: Any,
    resolver: SchemaShapeResolver,
    config: ImportConfig | None = None,
    progress: Any = None,
) -> ImportSummary:
    """Run one spreadsheet import (preview or import) for one branch.

    Parameters
    ----------
    import_type: customers | suppliers | items (enum member or value)
    mode: preview | import; None -> preview
    branch_id: branch every row is scoped to (never read from the file)
    data: uploaded file content
    filename: original file name; selects the decoder by extension
    connection: psycopg2 connection with autocommit off
    resolver: process-wide SchemaShapeResolver
    config: limits and error log directory (defaults when None)
    progress: optional tracker with ``start(total)`` / ``advance()``

    Returns
    -------
    ImportSummary

    Raises
    ------
    BadInput for file-level problems or unknown type / mode / branch.
    Database connection errors propagate; nothing is committed then.
    """
    cfg = config or ImportConfig()
    itype = coerce_import_type(import_type)
    run_mode = coerce_mode(mode)
    branch = _ensure_branch_id(branch_id)
    definition = get_definition(itype)

    sheet = parse_spreadsheet(data, filename, max_bytes=cfg.max_file_bytes)
    ensure_file_has_rows(sheet)
    ensure_required_headers(sheet.headers, definition.required_headers)
    logger.info(
        "decoded file=%s import=%s mode=%s rows=%d",
        filename or "<upload>",
        itype.value,
        run_mode.value,
        len(sheet.rows),
    )

    failed_rows: list[ImportRowError] = []
    skipped_rows: list[ImportRowSkip] = []
    preview_map: dict[int, PreviewRow] = {}
    candidates: list[CandidateRow[Any]] = []

    for parsed in sheet.rows:
        result = definition.parse_row(parsed.raw, parsed.row)
        raw = dict(parsed.raw)
        if result.errors:
            errors = tuple(result.errors) or (INVALID_ROW_MESSAGE,)
            failed_rows.append(ImportRowError(row=parsed.row, errors=errors, raw=raw))
            preview_map[parsed.row] = PreviewRow(
                row=parsed.row, status="failed", data=asdict(result.data), raw=raw, errors=errors
            )
            continue
        candidates.append(CandidateRow(row=parsed.row, raw=raw, data=result.data))

    if candidates:
        _run_checks(connection, definition, candidates, branch, resolver)

    rows_to_insert: list[CandidateRow[Any]] = []
    for c in candidates:
        preview_data = asdict(c.data)
        if c.errors:
            errors = tuple(c.errors)
            failed_rows.append(ImportRowError(row=c.row, errors=errors, raw=c.raw))
            preview_map[c.row] = PreviewRow(
                row=c.row, status="failed", data=preview_data, raw=c.raw, errors=errors
            )
        elif c.skip_reason is not None:
            skipped_rows.append(ImportRowSkip(row=c.row, reason=c.skip_reason, raw=c.raw))
            preview_map[c.row] = PreviewRow(
                row=c.row, status="skipped", data=preview_data, raw=c.raw, skip_reason=c.skip_reason
            )
        else:
            rows_to_insert.append(c)
            preview_map[c.row] = PreviewRow(row=c.row, status="valid", data=preview_data, raw=c.raw)
    logger.debug(
        "checked rows=%d queued=%d failed=%d skipped=%d",
        len(sheet.rows),
        len(rows_to_insert),
        len(failed_rows),
        len(skipped_rows),
    )

    inserted_count = 0
    if run_mode is ImportMode.IMPORT and rows_to_insert:
        batch = _insert_rows(connection, definition, rows_to_insert, branch, resolver, progress)
        inserted_count = batch.inserted_rows
        for c in rows_to_insert:
            outcome = batch.outcomes[c.row]
            preview_data = preview_map[c.row].data
            if outcome.state is RowState.INSERTED:
                preview_map[c.row] = PreviewRow(
                    row=c.row, status="inserted", data=preview_data, raw=c.raw
                )
            elif outcome.state is RowState.SKIPPED:
                reason = outcome.reason or ""
                skipped_rows.append(ImportRowSkip(row=c.row, reason=reason, raw=c.raw))
                preview_map[c.row] = PreviewRow(
                    row=c.row, status="skipped", data=preview_data, raw=c.raw, skip_reason=reason
                )
            else:
                errors = (outcome.reason or INVALID_ROW_MESSAGE,)
                failed_rows.append(ImportRowError(row=c.row, errors=errors, raw=c.raw))
                preview_map[c.row] = PreviewRow(
                    row=c.row, status="failed", data=preview_data, raw=c.raw, errors=errors
                )

    if run_mode is ImportMode.IMPORT and cfg.error_log_dir and (failed_rows or skipped_rows):
        _write_error_log(cfg.error_log_dir, itype, branch, failed_rows, skipped_rows)

    return build_summary(
        import_type=itype,
        mode=run_mode,
        failed_rows=failed_rows,
        skipped_rows=skipped_rows,
        preview_map=preview_map,
        total_rows=len(sheet.rows),
        valid_count=len(rows_to_insert),
        inserted_count=inserted_count,
        detail_limit=cfg.detail_limit,
        preview_limit=cfg.preview_limit,
    )


def _log_metrics(metrics: BatchMetrics) -> None:
    logger.debug(
        "batch size=%d inserted=%d elapsed_sec=%.3f",
        metrics.batch_size,
        metrics.inserted,
        metrics.elapsed_seconds,
    )


def _insert_rows(
    connection: Any,
    definition: ImportDefinition,
    rows: list[CandidateRow[Any]],
    branch_id: int,
    resolver: SchemaShapeResolver,
    progress: Any,
) -> BatchResult:
    prepare = None
    if definition.prepare is not None:
        prepare = partial(definition.prepare, branch_id=branch_id, resolver=resolver)

    if progress is not None:
        progress.start(len(rows))
    try:
        return insert_batch(
            connection,
            rows,
            insert_row=partial(definition.insert_row, branch_id=branch_id, resolver=resolver),
            classify=partial(classify, definition.import_type),
            prepare=prepare,
            metrics_callback=_log_metrics,
            progress=progress,
        )
    except Exception:
        # 未コミットの既定カテゴリ ID を再利用しない
        resolver.forget_default_category(branch_id)
        raise

