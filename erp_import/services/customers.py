from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from ..db.schema_shape import SchemaShapeResolver
from ..excel.reader import RequiredHeader
from ..models.candidate_row import CandidateRow, ParseResult
from ..models.import_rows import CustomerImportRow
from ..models.shapes import CustomerShape
from .business_rules import (
    add_file_duplicate_skips,
    candidate_keys,
    fetch_existing_keys,
    mark_existing,
)
from .parsing import (
    check_max_length,
    parse_boolean_like,
    parse_non_negative_number,
    read_raw_value,
    read_string,
)

"""Customer import: row parser, branch checks and insert."""

__all__ = [
    "REQUIRED_HEADERS",
    "TABLE",
    "apply_checks",
    "insert_row",
    "parse_row",
]

TABLE = "customers"

FULL_NAME_ALIASES = ("full_name", "customer_name", "name")
PHONE_ALIASES = ("phone", "phone_number", "mobile", "contact_phone")
TYPE_ALIASES = ("customer_type", "type")
GENDER_ALIASES = ("gender", "sex")
ADDRESS_ALIASES = ("address",)
BALANCE_ALIASES = ("remaining_balance", "open_balance", "balance")
ACTIVE_ALIASES = ("is_active", "active", "status")

REQUIRED_HEADERS = (RequiredHeader("full_name", ("full_name", "name", "customer_name")),)

ONE_TIME_WORDS = frozenset({"one time", "one time visitor"})


def _customer_type(value: str | None, errors: list[str]) -> str:
    if not value:
        return "regular"
    normalized = re.sub(r"[^a-z0-9]+", " ", value.strip().lower()).strip()
    if normalized == "regular":
        return "regular"
    if normalized in ONE_TIME_WORDS:
        return "one-time"
    errors.append("customer_type must be either regular or One-time visitor")
    return "regular"


def _gender(value: str | None, errors: list[str]) -> str | None:
    if not value:
        return None
    normalized = value.lower()
    if normalized in ("male", "female"):
        return normalized
    errors.append("gender/sex must be male or female")
    return None


def parse_row(raw: Mapping[str, Any], row_number: int) -> ParseResult[CustomerImportRow]:
    errors: list[str] = []
    full_name = read_string(raw, FULL_NAME_ALIASES) or ""
    phone = read_string(raw, PHONE_ALIASES)

    if not full_name:
        errors.append("full_name is required")
    else:
        check_max_length(full_name, "full_name", 160, errors)
    check_max_length(phone, "phone", 30, errors)

    customer_type = _customer_type(read_string(raw, TYPE_ALIASES), errors)
    gender = _gender(read_string(raw, GENDER_ALIASES), errors)
    balance = parse_non_negative_number(
        read_raw_value(raw, BALANCE_ALIASES), "remaining_balance", errors, 0.0
    )
    is_active = parse_boolean_like(read_raw_value(raw, ACTIVE_ALIASES), "is_active", errors, True)

    data = CustomerImportRow(
        full_name=full_name,
        phone=phone,
        customer_type=customer_type,
        gender=gender,
        address=read_string(raw, ADDRESS_ALIASES),
        remaining_balance=balance,
        is_active=is_active,
    )
    return ParseResult(data=data, errors=errors)


def _phone(row: CandidateRow[CustomerImportRow]) -> str | None:
    return row.data.phone


def apply_checks(
    cursor: Any,
    rows: Sequence[CandidateRow[CustomerImportRow]],
    branch_id: int,
    resolver: SchemaShapeResolver,
) -> None:
    """Phone is the natural key; customers without a phone are never duplicates."""
    add_file_duplicate_skips(rows, _phone, "Phone")

    phones = candidate_keys(rows, _phone)
    if not phones:
        return
    existing = fetch_existing_keys(
        cursor,
        f"SELECT LOWER(phone) FROM {resolver.schema}.{TABLE} "
        "WHERE branch_id = %s AND phone IS NOT NULL AND LOWER(phone) = ANY(%s)",
        (branch_id, phones),
    )
    mark_existing(rows, _phone, existing, "Phone")


def insert_row(
    cursor: Any, data: CustomerImportRow, branch_id: int, resolver: SchemaShapeResolver
) -> None:
    shape: CustomerShape = resolver.resolve(cursor, TABLE)
    columns = ["branch_id", "full_name", "phone"]
    placeholders = ["%s", "%s", "%s"]
    values: list[Any] = [branch_id, data.full_name, data.phone]

    if shape.sex_column_type:
        columns.append("sex")
        placeholders.append(f"%s::{shape.sex_column_type}")
        values.append(data.gender)
    if shape.has_gender_column:
        columns.append("gender")
        placeholders.append("%s")
        values.append(data.gender)
    if shape.has_type_column:
        columns.append("customer_type")
        placeholders.append("%s")
        values.append(data.customer_type)

    columns += ["address", shape.balance_column, "is_active"]
    placeholders += ["%s", "%s", "%s"]
    values += [data.address, data.remaining_balance, data.is_active]

    cursor.execute(
        f"INSERT INTO {resolver.schema}.{TABLE} ({', '.join(columns)}) "
        f"VALUES ({', '.join(placeholders)})",
        tuple(values),
    )
