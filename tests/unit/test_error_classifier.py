from __future__ import annotations

import psycopg2
import psycopg2.errors
import pytest

from erp_import.db.batch_insert import RowInsertError
from erp_import.models.import_types import ImportType
from erp_import.services.error_classifier import FAILED, SKIPPED, classify


@pytest.mark.parametrize(
    "import_type, constraint, reason",
    [
        (ImportType.ITEMS, "uq_items_branch_name", "Item name already exists in this branch"),
        (ImportType.ITEMS, "uq_items_branch_barcode", "Item barcode already exists in this branch"),
        (ImportType.CUSTOMERS, "uq_customers_branch_phone", "Customer phone already exists in this branch"),
        (ImportType.SUPPLIERS, "uq_suppliers_branch_name", "Supplier name already exists in this branch"),
    ],
)
def test_unique_violation_by_constraint(pg_errors, import_type, constraint, reason):
    result = classify(import_type, pg_errors.unique(constraint))
    assert (result.kind, result.reason) == (SKIPPED, reason)


@pytest.mark.parametrize(
    "import_type, reason",
    [
        (ImportType.CUSTOMERS, "Customer already exists in this branch"),
        (ImportType.SUPPLIERS, "Supplier already exists in this branch"),
        (ImportType.ITEMS, "Item already exists in this branch"),
    ],
)
def test_unique_violation_unknown_constraint(pg_errors, import_type, reason):
    result = classify(import_type, pg_errors.unique("some_other_index"))
    assert (result.kind, result.reason) == (SKIPPED, reason)


def test_unique_violation_without_pgcode_still_skipped():
    result = classify(ImportType.ITEMS, psycopg2.errors.UniqueViolation("dup"))
    assert result.kind == SKIPPED
    assert result.reason == "Item already exists in this branch"


def test_foreign_key_violation_fails(pg_errors):
    result = classify(ImportType.ITEMS, pg_errors.foreign_key())
    assert result.kind == FAILED
    assert result.reason == "Referenced record does not exist (foreign key violation)"


def test_other_errors_fail_with_primary_message(pg_errors):
    result = classify(ImportType.CUSTOMERS, pg_errors.check('new row violates check constraint "chk_balance"'))
    assert (result.kind, result.reason) == (FAILED, 'new row violates check constraint "chk_balance"')


def test_plain_message_first_line_used():
    err = psycopg2.DataError('invalid input syntax for type numeric: "x"\nDETAIL: something')
    assert classify(ImportType.ITEMS, err).reason == 'invalid input syntax for type numeric: "x"'


def test_row_insert_error_and_empty_message():
    assert classify(ImportType.ITEMS, RowInsertError("Failed to insert item")).reason == "Failed to insert item"
    assert classify(ImportType.ITEMS, psycopg2.DatabaseError()).reason == (
        "Unexpected database error while importing row"
    )
