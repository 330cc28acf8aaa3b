from __future__ import annotations

from dataclasses import dataclass

from psycopg2 import errorcodes
from psycopg2 import errors as pg_errors

from ..models.import_types import ImportType

"""Insert-time error classification.

Maps a database error raised while inserting one row to skipped / failed:
- unique violation -> skipped (a duplicate the batched pre-check could not
  see, e.g. a concurrent import)
- foreign key violation -> failed
- anything else -> failed with the database message
"""

__all__ = [
    "Classification",
    "classify",
]

SKIPPED = "skipped"
FAILED = "failed"

# 制約名が分かる場合はそちらを優先して理由文を決める
CONSTRAINT_REASONS: dict[ImportType, dict[str, str]] = {
    ImportType.CUSTOMERS: {
        "uq_customers_branch_phone": "Customer phone already exists in this branch",
    },
    ImportType.SUPPLIERS: {
        "uq_suppliers_branch_name": "Supplier name already exists in this branch",
    },
    ImportType.ITEMS: {
        "uq_items_branch_name": "Item name already exists in this branch",
        "uq_items_branch_barcode": "Item barcode already exists in this branch",
    },
}

DUPLICATE_REASONS: dict[ImportType, str] = {
    ImportType.CUSTOMERS: "Customer already exists in this branch",
    ImportType.SUPPLIERS: "Supplier already exists in this branch",
    ImportType.ITEMS: "Item already exists in this branch",
}

FK_REASON = "Referenced record does not exist (foreign key violation)"
FALLBACK_REASON = "Unexpected database error while importing row"


@dataclass(frozen=True)
class Classification:
    kind: str  # skipped | failed
    reason: str


def _sqlstate(error: BaseException) -> str | None:
    code = getattr(error, "pgcode", None)
    if code:
        return code
    if isinstance(error, pg_errors.UniqueViolation):
        return errorcodes.UNIQUE_VIOLATION
    if isinstance(error, pg_errors.ForeignKeyViolation):
        return errorcodes.FOREIGN_KEY_VIOLATION
    return None


def _diag_field(error: BaseException, name: str) -> str | None:
    diag = getattr(error, "diag", None)
    return getattr(diag, name, None) if diag is not None else None


def _message(error: BaseException) -> str:
    primary = _diag_field(error, "message_primary")
    if primary:
        return primary
    text = str(error).strip()
    # psycopg2 のメッセージは "ERROR: ...\nDETAIL: ..." 形式になり得る
    return text.splitlines()[0] if text else FALLBACK_REASON


def classify(import_type: ImportType, error: BaseException) -> Classification:
    state = _sqlstate(error)
    if state == errorcodes.UNIQUE_VIOLATION:
        constraint = _diag_field(error, "constraint_name")
        reason = CONSTRAINT_REASONS.get(import_type, {}).get(constraint or "")
        return Classification(SKIPPED, reason or DUPLICATE_REASONS[import_type])
    if state == errorcodes.FOREIGN_KEY_VIOLATION:
        return Classification(FAILED, FK_REASON)
    return Classification(FAILED, _message(error))
