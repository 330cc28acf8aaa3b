from __future__ import annotations

from erp_import.models.candidate_row import CandidateRow
from erp_import.models.import_rows import CustomerImportRow, ItemImportRow, SupplierImportRow
from erp_import.services import customers, items, suppliers
from erp_import.services.business_rules import add_file_duplicate_skips, unique_lower_set


def _customer(row: int, name: str, phone: str | None, errors: list[str] | None = None) -> CandidateRow:
    data = CustomerImportRow(name, phone, "regular", None, None, 0.0, True)
    return CandidateRow(row=row, raw={"full_name": name}, data=data, errors=list(errors or []))


def _item(row: int, name: str, barcode: str | None = None, store_id: int | None = None) -> CandidateRow:
    data = ItemImportRow(name, barcode, 5.0, 0.0, 0.0, 0.0, True, store_id)
    return CandidateRow(row=row, raw={"name": name}, data=data)


def _supplier(row: int, name: str) -> CandidateRow:
    data = SupplierImportRow(name, None, None, None, "555", None, 0.0, True)
    return CandidateRow(row=row, raw={"supplier_name": name}, data=data)


def test_unique_lower_set_keeps_first_seen_order():
    assert unique_lower_set(["B", "a", "b", "A", "c"]) == ["b", "a", "c"]


def test_file_duplicates_first_occurrence_wins():
    rows = [_customer(2, "A", "555-0100"), _customer(3, "B", "555-0101"), _customer(4, "C", "555-0100")]
    assert add_file_duplicate_skips(rows, lambda r: r.data.phone, "Phone") == 1
    assert rows[0].skip_reason is None
    assert rows[2].skip_reason == 'Phone "555-0100" is duplicated in the uploaded file (first at row 2)'


def test_file_duplicates_ignore_rows_with_errors():
    rows = [_customer(2, "A", "555", errors=["bad"]), _customer(3, "B", "555")]
    add_file_duplicate_skips(rows, lambda r: r.data.phone, "Phone")
    assert rows[1].skip_reason is None


def test_file_duplicates_are_case_insensitive_and_keep_first_reason():
    rows = [_item(2, "Widget", "W1"), _item(3, "WIDGET", "w1")]
    add_file_duplicate_skips(rows, lambda r: r.data.name, "Item name")
    add_file_duplicate_skips(rows, lambda r: r.data.barcode, "Barcode")
    assert rows[1].skip_reason == 'Item name "WIDGET" is duplicated in the uploaded file (first at row 2)'


def test_customer_checks_skip_existing_phone(connection, fake_db, resolver):
    fake_db.seed("customers", branch_id=1, full_name="Old", phone="555-0100")
    fake_db.seed("customers", branch_id=2, full_name="Elsewhere", phone="555-0101")
    rows = [_customer(2, "Jane", "555-0100"), _customer(3, "Jim", "555-0101"), _customer(4, "NoPhone", None)]
    with connection.cursor() as cur:
        customers.apply_checks(cur, rows, 1, resolver)
    assert rows[0].skip_reason == 'Phone "555-0100" already exists in this branch'
    assert rows[1].skip_reason is None
    assert rows[2].skip_reason is None
    # one batched lookup, deduplicated lowercased keys
    lookups = connection.statements("SELECT LOWER(phone)")
    assert len(lookups) == 1


def test_customer_checks_without_phones_run_no_query(connection, resolver):
    rows = [_customer(2, "Jane", None)]
    with connection.cursor() as cur:
        customers.apply_checks(cur, rows, 1, resolver)
    assert connection.executed == []


def test_supplier_checks(connection, fake_db, resolver):
    fake_db.seed("suppliers", branch_id=1, supplier_name="ACME")
    rows = [_supplier(2, "acme"), _supplier(3, "Globex"), _supplier(4, "globex")]
    with connection.cursor() as cur:
        suppliers.apply_checks(cur, rows, 1, resolver)
    assert rows[0].skip_reason == 'Supplier "acme" already exists in this branch'
    assert rows[1].skip_reason is None
    assert rows[2].skip_reason == 'Supplier name "globex" is duplicated in the uploaded file (first at row 3)'


def test_item_checks_name_then_barcode(connection, fake_db, resolver):
    fake_db.seed("items", branch_id=1, name="Widget", barcode="W-1")
    rows = [_item(2, "widget"), _item(3, "Gadget", "w-1"), _item(4, "Gizmo", "G-9")]
    with connection.cursor() as cur:
        items.apply_checks(cur, rows, 1, resolver)
    assert rows[0].skip_reason == 'Item name "widget" already exists in this branch'
    assert rows[1].skip_reason == 'Barcode "w-1" already exists in this branch'
    assert rows[2].is_candidate


def test_item_checks_unknown_store_is_an_error(connection, resolver):
    rows = [_item(2, "Widget", store_id=999), _item(3, "Gadget", store_id=1), _item(4, "Other", store_id=3)]
    with connection.cursor() as cur:
        items.apply_checks(cur, rows, 1, resolver)
    assert rows[0].errors == ["store_id 999 does not exist in this branch"]
    assert rows[0].skip_reason is None
    assert rows[1].errors == []
    # store 3 belongs to branch 2
    assert rows[2].errors == ["store_id 3 does not exist in this branch"]
    assert len(connection.statements("SELECT store_id")) == 1


def test_item_checks_skip_store_lookup_without_stores_table(connection, shapes):
    from dataclasses import replace

    from erp_import.db.schema_shape import SchemaShapeResolver

    shapes["items"] = replace(shapes["items"], stores_table_exists=False)
    resolver = SchemaShapeResolver(shapes=shapes)
    rows = [_item(2, "Widget", store_id=999)]
    with connection.cursor() as cur:
        items.apply_checks(cur, rows, 1, resolver)
    assert rows[0].errors == []
    assert connection.statements("SELECT store_id") == []
