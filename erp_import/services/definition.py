from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..excel.reader import BadInput, RequiredHeader
from ..models.candidate_row import CandidateRow, ParseResult
from ..models.import_types import ImportMode, ImportType
from . import customers, items, suppliers

"""Registry of per-type import definitions.

A definition bundles what varies by import type (headers, parser, checks,
insert); the pipeline itself is shared.
"""

__all__ = [
    "ImportDefinition",
    "coerce_import_type",
    "coerce_mode",
    "get_definition",
]


@dataclass(frozen=True)
class ImportDefinition:
    import_type: ImportType
    table: str
    required_headers: tuple[RequiredHeader, ...]
    parse_row: Callable[[Mapping[str, Any], int], ParseResult[Any]]
    apply_checks: Callable[[Any, Sequence[CandidateRow[Any]], int, Any], None]
    insert_row: Callable[[Any, Any, int, Any], None]
    prepare: Callable[[Any, int, Any], None] | None = None


_DEFINITIONS: dict[ImportType, ImportDefinition] = {
    ImportType.CUSTOMERS: ImportDefinition(
        import_type=ImportType.CUSTOMERS,
        table=customers.TABLE,
        required_headers=customers.REQUIRED_HEADERS,
        parse_row=customers.parse_row,
        apply_checks=customers.apply_checks,
        insert_row=customers.insert_row,
    ),
    ImportType.SUPPLIERS: ImportDefinition(
        import_type=ImportType.SUPPLIERS,
        table=suppliers.TABLE,
        required_headers=suppliers.REQUIRED_HEADERS,
        parse_row=suppliers.parse_row,
        apply_checks=suppliers.apply_checks,
        insert_row=suppliers.insert_row,
    ),
    ImportType.ITEMS: ImportDefinition(
        import_type=ImportType.ITEMS,
        table=items.TABLE,
        required_headers=items.REQUIRED_HEADERS,
        parse_row=items.parse_row,
        apply_checks=items.apply_checks,
        insert_row=items.insert_row,
        prepare=items.prepare,
    ),
}


def coerce_import_type(value: ImportType | str) -> ImportType:
    if isinstance(value, ImportType):
        return value
    try:
        return ImportType(str(value).strip().lower())
    except ValueError as e:
        raise BadInput(f"Unsupported import type: {value}") from e


def coerce_mode(value: ImportMode | str | None) -> ImportMode:
    if value is None:
        return ImportMode.PREVIEW
    if isinstance(value, ImportMode):
        return value
    try:
        return ImportMode(str(value).strip().lower())
    except ValueError as e:
        raise BadInput(f"Unsupported import mode: {value}") from e


def get_definition(import_type: ImportType | str) -> ImportDefinition:
    return _DEFINITIONS[coerce_import_type(import_type)]
