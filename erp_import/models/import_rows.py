from __future__ import annotations

from dataclasses import dataclass

"""Typed payloads produced by the row parsers, one per import type."""

__all__ = [
    "CustomerImportRow",
    "ItemImportRow",
    "SupplierImportRow",
]


@dataclass(frozen=True)
class CustomerImportRow:
    full_name: str
    phone: str | None
    customer_type: str  # "regular" | "one-time"
    gender: str | None  # "male" | "female"
    address: str | None
    remaining_balance: float
    is_active: bool


@dataclass(frozen=True)
class SupplierImportRow:
    supplier_name: str
    company_name: str | None
    contact_person: str | None
    contact_phone: str | None
    phone: str | None
    location: str | None
    remaining_balance: float
    is_active: bool


@dataclass(frozen=True)
class ItemImportRow:
    name: str
    barcode: str | None
    stock_alert: float
    opening_balance: float
    cost_price: float
    sell_price: float
    is_active: bool
    store_id: int | None
