from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..models.shapes import CustomerShape, ItemShape, SupplierShape

"""Schema shape resolver.

Target tables exist under two naming generations; the resolver inspects
information_schema once per table and caches the resulting shape on the
instance for the process lifetime (DDL does not change while the process
runs). Construct one resolver per process and pass it to the pipeline.

Test seam: ``SchemaShapeResolver(shapes={"customers": CustomerShape(...)})``
never touches the database for preloaded tables.
"""

__all__ = [
    "ColumnInfo",
    "SchemaShapeResolver",
]

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_NAME = "General"
DEFAULT_CATEGORY_DESCRIPTION = "Auto-created default category for imports"


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    is_nullable: bool
    data_type: str
    udt_schema: str | None
    udt_name: str | None


class SchemaShapeResolver:
    """Resolve and memoize table shapes plus per-branch default categories."""

    def __init__(self, schema: str = "ims", shapes: Mapping[str, Any] | None = None) -> None:
        self.schema = schema
        self._preset: dict[str, Any] = dict(shapes or {})
        self._shapes: dict[str, Any] = dict(self._preset)
        self._default_categories: dict[int, int] = {}

    # ------------------------------------------------------------------
    # information_schema helpers
    # ------------------------------------------------------------------
    def table_columns(self, cursor: Any, table: str) -> dict[str, ColumnInfo]:
        cursor.execute(
            "SELECT column_name, is_nullable, data_type, udt_schema, udt_name "
            "FROM information_schema.columns "
            "WHERE table_schema = %s AND table_name = %s",
            (self.schema, table),
        )
        columns: dict[str, ColumnInfo] = {}
        for name, nullable, data_type, udt_schema, udt_name in cursor.fetchall():
            columns[name] = ColumnInfo(
                name=name,
                is_nullable=(nullable == "YES"),
                data_type=data_type,
                udt_schema=udt_schema,
                udt_name=udt_name,
            )
        return columns

    def table_exists(self, cursor: Any, table: str) -> bool:
        cursor.execute(
            "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = %s AND table_name = %s)",
            (self.schema, table),
        )
        row = cursor.fetchone()
        return bool(row and row[0])

    # ------------------------------------------------------------------
    # shape detection
    # ------------------------------------------------------------------
    def _detect_customers(self, cursor: Any) -> CustomerShape:
        cols = self.table_columns(cursor, "customers")
        sex = cols.get("sex")
        sex_type = None
        if sex is not None:
            if sex.data_type == "USER-DEFINED" and sex.udt_name:
                sex_type = f"{sex.udt_schema}.{sex.udt_name}" if sex.udt_schema else sex.udt_name
            else:
                sex_type = "text"
        return CustomerShape(
            balance_column="open_balance" if "open_balance" in cols else "remaining_balance",
            has_gender_column="gender" in cols,
            has_type_column="customer_type" in cols,
            sex_column_type=sex_type,
        )

    def _detect_suppliers(self, cursor: Any) -> SupplierShape:
        cols = self.table_columns(cursor, "suppliers")
        if "country" in cols:
            location = "country"
        elif "location" in cols:
            location = "location"
        else:
            location = "company_name"
        return SupplierShape(
            name_column="name" if "name" in cols else "supplier_name",
            balance_column="open_balance" if "open_balance" in cols else "remaining_balance",
            location_column=location,
        )

    def _detect_items(self, cursor: Any) -> ItemShape:
        cols = self.table_columns(cursor, "items")
        cat = cols.get("cat_id")
        return ItemShape(
            stock_alert_column="stock_alert" if "stock_alert" in cols else "reorder_level",
            cat_id_required=cat is not None and not cat.is_nullable,
            has_store_column="store_id" in cols,
            stores_table_exists=self.table_exists(cursor, "stores"),
            store_items_table_exists=self.table_exists(cursor, "store_items"),
        )

    _DETECTORS = {
        "customers": _detect_customers,
        "suppliers": _detect_suppliers,
        "items": _detect_items,
    }

    def resolve(self, cursor: Any, table: str) -> Any:
        """Return the (cached) shape descriptor for ``table``."""
        cached = self._shapes.get(table)
        if cached is not None:
            return cached
        detector = self._DETECTORS.get(table)
        if detector is None:
            raise KeyError(f"no shape detector for table '{table}'")
        shape = detector(self, cursor)
        logger.debug("resolved shape schema=%s table=%s shape=%s", self.schema, table, shape)
        self._shapes[table] = shape
        return shape

    def reset(self) -> None:
        """Drop every cached shape and category (preloaded shapes are kept)."""
        self._shapes = dict(self._preset)
        self._default_categories.clear()

    # ------------------------------------------------------------------
    # default category
    # ------------------------------------------------------------------
    def ensure_default_category(self, cursor: Any, branch_id: int) -> int:
        """Return a category id for ``branch_id``, creating "General" if none exists."""
        cached = self._default_categories.get(branch_id)
        if cached:
            return cached

        cursor.execute(
            f"SELECT cat_id FROM {self.schema}.categories "
            "WHERE branch_id = %s ORDER BY cat_id LIMIT 1",
            (branch_id,),
        )
        existing = cursor.fetchone()
        if existing and existing[0]:
            cat_id = int(existing[0])
        else:
            cursor.execute(
                f"INSERT INTO {self.schema}.categories (branch_id, cat_name, description, is_active) "
                "VALUES (%s, %s, %s, TRUE) RETURNING cat_id",
                (branch_id, DEFAULT_CATEGORY_NAME, DEFAULT_CATEGORY_DESCRIPTION),
            )
            created = cursor.fetchone()
            cat_id = int(created[0]) if created and created[0] else 0
            if not cat_id:
                raise RuntimeError("Failed to create default category")
            logger.info("created default category branch_id=%s cat_id=%s", branch_id, cat_id)
        self._default_categories[branch_id] = cat_id
        return cat_id

    def forget_default_category(self, branch_id: int) -> None:
        """Drop a cached category id (its creating transaction may not have committed)."""
        self._default_categories.pop(branch_id, None)
