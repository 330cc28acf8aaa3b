from __future__ import annotations

import io
import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Any

import pandas as pd

from ..models.parsed_sheet import ParsedRow, ParsedSheet

"""Spreadsheet decoder.

Turns an uploaded blob (.xlsx / .xls / .csv) into a ParsedSheet:
- 1行目をヘッダ行として扱い、2行目以降をデータ行とする
- ヘッダは正規化 (小文字 + アンダースコア) 済みキーになる
- 全セルが空のレコードは捨てる (行番号は元ファイルの行番号を保持)

Only the first worksheet is read.
"""

__all__ = [
    "BadInput",
    "EmptyFileError",
    "MissingColumnsError",
    "MissingWorksheetError",
    "NoDataRowsError",
    "RequiredHeader",
    "SheetHeaderError",
    "UnsupportedFileError",
    "ensure_file_has_rows",
    "ensure_required_headers",
    "has_meaningful_value",
    "normalize_header",
    "parse_spreadsheet",
]

EXCEL_EXTENSIONS = {".xlsx", ".xls"}
CSV_EXTENSIONS = {".csv"}


class BadInput(Exception):
    """File-level rejection. Raised before any row is processed."""


class EmptyFileError(BadInput):
    pass


class UnsupportedFileError(BadInput):
    pass


class MissingWorksheetError(BadInput):
    pass


class SheetHeaderError(BadInput):
    """Raised when the header row is missing or empty after normalization."""


class MissingColumnsError(BadInput):
    """Raised when no alias of a required field appears in the header."""


class NoDataRowsError(BadInput):
    pass


@dataclass(frozen=True)
class RequiredHeader:
    field: str
    aliases: tuple[str, ...]


def normalize_header(value: str) -> str:
    text = value.strip().lower()
    text = re.sub(r"[\s\-]+", "_", text)
    text = re.sub(r"[^a-z0-9_]", "", text)
    return re.sub(r"_+", "_", text)


def has_meaningful_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def _cell_text(value: Any) -> str:
    """Render one cell the way the user sees it in the sheet."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if pd.isna(value):  # NaN / NaT
        return ""
    if pd.api.types.is_bool(value):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if not math.isfinite(value):
            return str(value)
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _file_kind(filename: str | None) -> str:
    if filename is None:
        return "excel"
    suffix = PurePath(filename).suffix.lower()
    if suffix in EXCEL_EXTENSIONS:
        return "excel"
    if suffix in CSV_EXTENSIONS:
        return "csv"
    raise UnsupportedFileError("Only .xlsx and .csv files are supported")


def _read_frame(data: bytes, kind: str) -> pd.DataFrame:
    buffer = io.BytesIO(data)
    if kind == "csv":
        try:
            # skip_blank_lines=False: 行番号をファイルと一致させる
            return pd.read_csv(
                buffer,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
            )
        except pd.errors.EmptyDataError as e:
            raise SheetHeaderError("Header row is empty") from e
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise BadInput(f"Uploaded file could not be read: {e}") from e

    try:
        xls = pd.ExcelFile(buffer)
    except Exception as e:  # zipfile.BadZipFile, ValueError, engine errors ...
        raise BadInput(f"Uploaded file could not be read: {e}") from e
    with xls:
        if not xls.sheet_names:
            raise MissingWorksheetError("No worksheet found in uploaded file")
        first = xls.sheet_names[0]
        # dtype=object: openpyxl の値 (int/float/datetime) をそのまま受け取る
        return xls.parse(first, header=None, dtype=object, keep_default_na=False)


def _dedupe_keys(keys: Sequence[str]) -> list[str]:
    """Suffix repeated header keys with ``_1``, ``_2`` ... so no column is lost.

    >>> _dedupe_keys(["name", "phone", "name", ""])
    ['name', 'phone', 'name_1', '']
    """
    seen: set[str] = set()
    out: list[str] = []
    for key in keys:
        if not key:
            out.append(key)
            continue
        candidate = key
        n = 0
        while candidate in seen:
            n += 1
            candidate = f"{key}_{n}"
        seen.add(candidate)
        out.append(candidate)
    return out


def _build_rows(headers: Sequence[str], values: Iterable[Sequence[Any]]) -> list[ParsedRow]:
    rows: list[ParsedRow] = []
    for index, cells in enumerate(values):
        raw: dict[str, str] = {}
        for key, cell in zip(headers, cells, strict=False):
            if not key:
                continue
            raw[key] = _cell_text(cell)
        if not any(has_meaningful_value(v) for v in raw.values()):
            continue
        # header = line 1, first data line = 2
        rows.append(ParsedRow(row=index + 2, raw=raw))
    return rows


def parse_spreadsheet(
    data: bytes, filename: str | None = None, max_bytes: int | None = None
) -> ParsedSheet:
    """Decode an uploaded spreadsheet into headers and non-blank rows.

    Parameters
    ----------
    data: uploaded file content
    filename: original file name; its extension selects the reader (None -> Excel)
    max_bytes: upper bound on the upload size (None -> unlimited)

    Raises
    ------
    BadInput (or a subclass) when the file is empty, too large, of an
    unsupported type, unreadable, has no worksheet or an empty header row.
    """
    if not data:
        raise EmptyFileError("Uploaded file is empty")
    if max_bytes is not None and len(data) > max_bytes:
        raise BadInput(f"Uploaded file exceeds the {max_bytes // (1024 * 1024)} MB limit")

    kind = _file_kind(filename)
    df = _read_frame(data, kind)
    if df.shape[0] < 1:
        raise SheetHeaderError("Header row is empty")

    header_cells = df.iloc[0].tolist()
    column_keys = _dedupe_keys([normalize_header(_cell_text(c)) for c in header_cells])
    headers = tuple(k for k in column_keys if k)
    if not headers:
        raise SheetHeaderError("Header row is empty")

    body = (r.tolist() for _, r in df.iloc[1:].iterrows())
    rows = _build_rows(column_keys, body)
    return ParsedSheet(headers=headers, rows=tuple(rows))


def ensure_file_has_rows(sheet: ParsedSheet) -> None:
    if not sheet.rows:
        raise NoDataRowsError("No data rows found in file")


def ensure_required_headers(headers: Sequence[str], required: Iterable[RequiredHeader]) -> None:
    """Fail fast when a required field has no alias anywhere in the header row."""
    present = set(headers)
    missing = [r.field for r in required if not any(a in present for a in r.aliases)]
    if missing:
        raise MissingColumnsError(f"Missing required columns: {', '.join(missing)}")
