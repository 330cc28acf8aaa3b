from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import RECORD_KEYS, ErrorRecord

"""Row-level error log (JSON Lines).

- 固定スキーマ (RECORD_KEYS 以外のキーは禁止)
- 実行ごとに ``<dir>/import-errors-YYYYMMDD-HHMMSS.log`` (UTC) を生成
- flush() までメモリ上にバッファし、空なら何も書かない
"""

__all__ = [
    "ErrorLogBuffer",
    "ErrorRecord",
]

TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer of failed/skipped row records; flush appends JSON Lines."""

    def __init__(self, directory: str | Path = "./logs") -> None:
        self.directory = Path(directory)
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.directory / f"import-errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None when nothing was buffered."""
        if not self._records:
            return None
        self.directory.mkdir(parents=True, exist_ok=True)
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                line = r.to_json_line()
                if set(json.loads(line)) != RECORD_KEYS:
                    raise ValueError(f"error record keys mismatch: {sorted(json.loads(line))}")
                f.write(line + "\n")
        self._records.clear()
        return fp
