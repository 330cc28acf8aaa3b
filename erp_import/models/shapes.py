from __future__ import annotations

from dataclasses import dataclass

"""Schema shape descriptors.

Target tables exist under two naming generations (e.g. ``open_balance`` vs
``remaining_balance``). A shape maps each logical field to the physical
column present in the live schema. Shapes are resolved once per process by
SchemaShapeResolver, or injected directly in tests.
"""

__all__ = [
    "CustomerShape",
    "ItemShape",
    "SupplierShape",
]


@dataclass(frozen=True)
class CustomerShape:
    balance_column: str = "remaining_balance"  # open_balance | remaining_balance
    has_gender_column: bool = True
    has_type_column: bool = True
    sex_column_type: str | None = None  # e.g. "ims.sex_enum"; None -> no sex column


@dataclass(frozen=True)
class SupplierShape:
    name_column: str = "supplier_name"  # name | supplier_name
    balance_column: str = "remaining_balance"
    location_column: str = "location"  # country | location | company_name


@dataclass(frozen=True)
class ItemShape:
    stock_alert_column: str = "stock_alert"  # stock_alert | reorder_level
    cat_id_required: bool = False
    has_store_column: bool = True
    stores_table_exists: bool = True
    store_items_table_exists: bool = True
