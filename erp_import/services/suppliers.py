from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from ..db.schema_shape import SchemaShapeResolver
from ..excel.reader import RequiredHeader
from ..models.candidate_row import CandidateRow, ParseResult
from ..models.import_rows import SupplierImportRow
from ..models.shapes import SupplierShape
from .business_rules import (
    add_file_duplicate_skips,
    candidate_keys,
    fetch_existing_keys,
    mark_existing,
)
from .parsing import (
    check_max_length,
    is_blank,
    parse_boolean_like,
    parse_non_negative_number,
    read_raw_value,
    read_string,
)

"""Supplier import: row parser, branch checks and insert."""

__all__ = [
    "REQUIRED_HEADERS",
    "TABLE",
    "apply_checks",
    "insert_row",
    "location_value",
    "parse_row",
]

TABLE = "suppliers"

NAME_ALIASES = ("supplier_name", "name", "supplier")
PHONE_ALIASES = ("phone", "mobile")
LOCATION_ALIASES = ("location", "country")
BALANCE_ALIASES = ("remaining_balance", "open_balance", "balance")
ACTIVE_ALIASES = ("is_active", "active", "status")

REQUIRED_HEADERS = (
    RequiredHeader("supplier_name", ("supplier_name", "name")),
    RequiredHeader("phone", ("phone", "mobile")),
    RequiredHeader("remaining_balance", BALANCE_ALIASES),
)


def parse_row(raw: Mapping[str, Any], row_number: int) -> ParseResult[SupplierImportRow]:
    errors: list[str] = []
    supplier_name = read_string(raw, NAME_ALIASES) or ""
    company_name = read_string(raw, ("company_name",))
    contact_person = read_string(raw, ("contact_person",))
    contact_phone = read_string(raw, ("contact_phone",))
    phone = read_string(raw, PHONE_ALIASES)
    location = read_string(raw, LOCATION_ALIASES)
    balance_raw = read_raw_value(raw, BALANCE_ALIASES)

    if not supplier_name:
        errors.append("supplier_name is required")
    else:
        check_max_length(supplier_name, "supplier_name", 140, errors)
    check_max_length(company_name, "company_name", 80, errors)
    check_max_length(contact_person, "contact_person", 140, errors)
    check_max_length(contact_phone, "contact_phone", 30, errors)
    check_max_length(phone, "phone", 30, errors)
    if not phone:
        errors.append("phone is required")
    check_max_length(location, "location/country", 80, errors)
    if is_blank(balance_raw):
        errors.append("remaining_balance is required")

    balance = parse_non_negative_number(balance_raw, "remaining_balance", errors, 0.0)
    is_active = parse_boolean_like(read_raw_value(raw, ACTIVE_ALIASES), "is_active", errors, True)

    data = SupplierImportRow(
        supplier_name=supplier_name,
        company_name=company_name,
        contact_person=contact_person,
        contact_phone=contact_phone,
        phone=phone,
        location=location,
        remaining_balance=balance,
        is_active=is_active,
    )
    return ParseResult(data=data, errors=errors)


def _name(row: CandidateRow[SupplierImportRow]) -> str | None:
    return row.data.supplier_name


def apply_checks(
    cursor: Any,
    rows: Sequence[CandidateRow[SupplierImportRow]],
    branch_id: int,
    resolver: SchemaShapeResolver,
) -> None:
    add_file_duplicate_skips(rows, _name, "Supplier name")

    names = candidate_keys(rows, _name)
    if not names:
        return
    shape: SupplierShape = resolver.resolve(cursor, TABLE)
    existing = fetch_existing_keys(
        cursor,
        f"SELECT LOWER({shape.name_column}) FROM {resolver.schema}.{TABLE} "
        f"WHERE branch_id = %s AND LOWER({shape.name_column}) = ANY(%s)",
        (branch_id, names),
    )
    mark_existing(rows, _name, existing, "Supplier")


def location_value(shape: SupplierShape, data: SupplierImportRow) -> str | None:
    """Value for the location-like column (company_name first when that is the column)."""
    if shape.location_column == "company_name":
        return data.company_name or data.location
    return data.location or data.company_name


def insert_row(
    cursor: Any, data: SupplierImportRow, branch_id: int, resolver: SchemaShapeResolver
) -> None:
    shape: SupplierShape = resolver.resolve(cursor, TABLE)
    cursor.execute(
        f"INSERT INTO {resolver.schema}.{TABLE} "
        f"(branch_id, {shape.name_column}, {shape.location_column}, phone, "
        f"{shape.balance_column}, is_active) "
        "VALUES (%s, %s, %s, %s, %s, %s)",
        (
            branch_id,
            data.supplier_name,
            location_value(shape, data),
            data.phone,
            data.remaining_balance,
            data.is_active,
        ),
    )
