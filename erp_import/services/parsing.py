from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

"""Cell coercion helpers shared by the per-type row parsers.

Every helper appends to a caller-owned ``errors`` list instead of raising,
so one row reports all of its problems at once.
"""

__all__ = [
    "is_blank",
    "normalize_lookup",
    "parse_boolean_like",
    "parse_non_negative_number",
    "parse_optional_positive_int",
    "read_raw_value",
    "read_string",
    "check_max_length",
]

TRUE_WORDS = frozenset({"true", "1", "yes", "y", "active"})
FALSE_WORDS = frozenset({"false", "0", "no", "n", "inactive"})


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def read_raw_value(raw: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    """Return the value under the first alias present in ``raw`` (None if none)."""
    for alias in aliases:
        if alias in raw:
            return raw[alias]
    return None


def read_string(raw: Mapping[str, Any], aliases: Sequence[str]) -> str | None:
    value = read_raw_value(raw, aliases)
    if is_blank(value):
        return None
    return str(value).strip()


def normalize_lookup(value: str) -> str:
    return value.strip().lower()


def check_max_length(value: str | None, field: str, limit: int, errors: list[str]) -> None:
    if value and len(value) > limit:
        errors.append(f"{field} must be at most {limit} characters")


def _to_number(value: Any) -> float:
    text = str(value).replace(",", "").strip()
    # float() だけが受け付ける桁区切り "1_000" は数値扱いしない
    if "_" in text:
        raise ValueError(f"invalid number: {text!r}")
    return float(text)


def parse_non_negative_number(value: Any, field: str, errors: list[str], fallback: float) -> float:
    if is_blank(value):
        return fallback
    try:
        parsed = _to_number(value)
    except ValueError:
        parsed = math.nan
    if not math.isfinite(parsed):
        errors.append(f"{field} must be a valid number")
        return fallback
    if parsed < 0:
        errors.append(f"{field} must be greater than or equal to 0")
        return fallback
    return parsed


def parse_optional_positive_int(value: Any, field: str, errors: list[str]) -> int | None:
    if is_blank(value):
        return None
    try:
        parsed = _to_number(value)
    except ValueError:
        parsed = math.nan
    if not math.isfinite(parsed) or not parsed.is_integer() or parsed <= 0:
        errors.append(f"{field} must be a positive integer")
        return None
    return int(parsed)


def parse_boolean_like(value: Any, field: str, errors: list[str], fallback: bool) -> bool:
    if is_blank(value):
        return fallback
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_WORDS:
        return True
    if normalized in FALSE_WORDS:
        return False
    errors.append(f"{field} must be boolean-like (true/false/1/0/yes/no)")
    return fallback
