from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..db.batch_insert import RowInsertError
from ..db.schema_shape import SchemaShapeResolver
from ..excel.reader import RequiredHeader
from ..models.candidate_row import CandidateRow, ParseResult
from ..models.import_rows import ItemImportRow
from ..models.shapes import ItemShape
from .business_rules import (
    add_file_duplicate_skips,
    candidate_keys,
    fetch_existing_keys,
    ValueGetter,
    mark_existing,
)
from .parsing import (
    check_max_length,
    is_blank,
    parse_boolean_like,
    parse_non_negative_number,
    parse_optional_positive_int,
    read_raw_value,
    read_string,
)

"""Item import: row parser, branch checks, default category and insert.

An item row may name a store; when the store-items side table exists the
row's opening balance is written there as the store-level opening stock.
"""

__all__ = [
    "REQUIRED_HEADERS",
    "TABLE",
    "apply_checks",
    "insert_row",
    "parse_row",
    "prepare",
]

logger = logging.getLogger(__name__)

TABLE = "items"

BARCODE_ALIASES = ("barcode", "bar_code", "sku")
BRANCH_ALIASES = ("branch_id", "branch")
STOCK_ALERT_ALIASES = ("stock_alert", "stockalert", "reorder_level")
OPENING_ALIASES = ("opening_balance", "opening_stock", "quantity")
COST_ALIASES = ("cost_price", "cost")
SELL_ALIASES = ("sell_price", "price")
ACTIVE_ALIASES = ("is_active", "active", "status")
STORE_ALIASES = ("store_id", "store")

REQUIRED_HEADERS = (RequiredHeader("name", ("name",)),)

DEFAULT_STOCK_ALERT = 5.0


def parse_row(raw: Mapping[str, Any], row_number: int) -> ParseResult[ItemImportRow]:
    errors: list[str] = []
    name = read_string(raw, ("name",)) or ""
    barcode = read_string(raw, BARCODE_ALIASES)

    if not name:
        errors.append("name is required")
    else:
        check_max_length(name, "name", 160, errors)
    check_max_length(barcode, "barcode", 80, errors)

    # branch は呼び出し側 (セッション) からのみ受け取る
    if not is_blank(read_raw_value(raw, BRANCH_ALIASES)):
        errors.append("branch_id must not be provided in the file; it is derived from your session")

    stock_alert = parse_non_negative_number(
        read_raw_value(raw, STOCK_ALERT_ALIASES), "stock_alert", errors, DEFAULT_STOCK_ALERT
    )
    opening_balance = parse_non_negative_number(
        read_raw_value(raw, OPENING_ALIASES), "opening_balance", errors, 0.0
    )
    cost_price = parse_non_negative_number(read_raw_value(raw, COST_ALIASES), "cost_price", errors, 0.0)
    sell_price = parse_non_negative_number(read_raw_value(raw, SELL_ALIASES), "sell_price", errors, 0.0)
    is_active = parse_boolean_like(read_raw_value(raw, ACTIVE_ALIASES), "is_active", errors, True)
    store_id = parse_optional_positive_int(read_raw_value(raw, STORE_ALIASES), "store_id", errors)

    data = ItemImportRow(
        name=name,
        barcode=barcode,
        stock_alert=stock_alert,
        opening_balance=opening_balance,
        cost_price=cost_price,
        sell_price=sell_price,
        is_active=is_active,
        store_id=store_id,
    )
    return ParseResult(data=data, errors=errors)


def _name(row: CandidateRow[ItemImportRow]) -> str | None:
    return row.data.name


def _barcode(row: CandidateRow[ItemImportRow]) -> str | None:
    return row.data.barcode


def _check_existing(
    cursor: Any,
    rows: Sequence[CandidateRow[ItemImportRow]],
    branch_id: int,
    schema: str,
    column: str,
    get_value: ValueGetter,
    label: str,
) -> None:
    keys = candidate_keys(rows, get_value)
    if not keys:
        return
    existing = fetch_existing_keys(
        cursor,
        f"SELECT LOWER({column}) FROM {schema}.{TABLE} "
        f"WHERE branch_id = %s AND {column} IS NOT NULL AND LOWER({column}) = ANY(%s)",
        (branch_id, keys),
    )
    mark_existing(rows, get_value, existing, label)


def _check_stores(
    cursor: Any, rows: Sequence[CandidateRow[ItemImportRow]], branch_id: int, schema: str
) -> None:
    """Unknown store ids are row errors, also for rows already skipped."""
    store_ids = sorted({r.data.store_id for r in rows if not r.errors and r.data.store_id})
    if not store_ids:
        return
    cursor.execute(
        f"SELECT store_id FROM {schema}.stores WHERE branch_id = %s AND store_id = ANY(%s)",
        (branch_id, store_ids),
    )
    known = {int(r[0]) for r in cursor.fetchall()}
    for row in rows:
        if row.errors or not row.data.store_id:
            continue
        if row.data.store_id not in known:
            row.errors.append(f"store_id {row.data.store_id} does not exist in this branch")


def apply_checks(
    cursor: Any,
    rows: Sequence[CandidateRow[ItemImportRow]],
    branch_id: int,
    resolver: SchemaShapeResolver,
) -> None:
    add_file_duplicate_skips(rows, _name, "Item name")
    add_file_duplicate_skips(rows, _barcode, "Barcode")

    _check_existing(cursor, rows, branch_id, resolver.schema, "name", _name, "Item name")
    _check_existing(cursor, rows, branch_id, resolver.schema, "barcode", _barcode, "Barcode")

    shape: ItemShape = resolver.resolve(cursor, TABLE)
    if shape.stores_table_exists:
        _check_stores(cursor, rows, branch_id, resolver.schema)


def prepare(cursor: Any, branch_id: int, resolver: SchemaShapeResolver) -> None:
    """Resolve the branch default category once, outside any row savepoint."""
    shape: ItemShape = resolver.resolve(cursor, TABLE)
    if shape.cat_id_required:
        resolver.ensure_default_category(cursor, branch_id)


def insert_row(
    cursor: Any, data: ItemImportRow, branch_id: int, resolver: SchemaShapeResolver
) -> None:
    shape: ItemShape = resolver.resolve(cursor, TABLE)
    columns = ["branch_id"]
    values: list[Any] = [branch_id]

    if shape.cat_id_required:
        columns.append("cat_id")
        values.append(resolver.ensure_default_category(cursor, branch_id))
    if shape.has_store_column:
        columns.append("store_id")
        values.append(data.store_id)

    columns += [
        "name",
        "barcode",
        shape.stock_alert_column,
        "opening_balance",
        "cost_price",
        "sell_price",
        "is_active",
    ]
    values += [
        data.name,
        data.barcode,
        data.stock_alert,
        data.opening_balance,
        data.cost_price,
        data.sell_price,
        data.is_active,
    ]

    placeholders = ", ".join(["%s"] * len(values))
    cursor.execute(
        f"INSERT INTO {resolver.schema}.{TABLE} ({', '.join(columns)}) "
        f"VALUES ({placeholders}) RETURNING item_id",
        tuple(values),
    )
    inserted = cursor.fetchone()
    item_id = int(inserted[0]) if inserted and inserted[0] else 0
    if not item_id:
        raise RowInsertError("Failed to insert item")

    if shape.store_items_table_exists and data.store_id:
        cursor.execute(
            f"INSERT INTO {resolver.schema}.store_items (store_id, product_id, quantity) "
            "VALUES (%s, %s, %s) "
            "ON CONFLICT (store_id, product_id) DO UPDATE SET quantity = EXCLUDED.quantity",
            (data.store_id, item_id, data.opening_balance),
        )
        logger.debug("store opening stock store_id=%s item_id=%s", data.store_id, item_id)
