from __future__ import annotations

from dataclasses import dataclass

"""Decoded worksheet models.

ParsedSheet is produced once by the spreadsheet decoder and never mutated.
"""

__all__ = [
    "ParsedRow",
    "ParsedSheet",
]


@dataclass(frozen=True)
class ParsedRow:
    """One non-blank spreadsheet record.

    ``row`` is the 1-based line number in the source file (header = line 1),
    kept for user-facing messages.
    """
    row: int
    raw: dict[str, str]  # 正規化ヘッダ -> セル文字列 (空文字あり)


@dataclass(frozen=True)
class ParsedSheet:
    headers: tuple[str, ...]
    rows: tuple[ParsedRow, ...]
