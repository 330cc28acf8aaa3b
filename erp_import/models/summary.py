from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from .import_types import ImportMode, ImportType

"""ImportSummary and its row detail records.

The summary is the sole output artifact of one import run. It carries no
timestamps so that repeated previews serialize identically.
"""

__all__ = [
    "ImportRowError",
    "ImportRowSkip",
    "ImportSummary",
    "PreviewRow",
]


@dataclass(frozen=True)
class ImportRowError:
    row: int
    errors: tuple[str, ...]
    raw: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "errors": list(self.errors), "raw": dict(self.raw)}


@dataclass(frozen=True)
class ImportRowSkip:
    row: int
    reason: str
    raw: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "reason": self.reason, "raw": dict(self.raw)}


@dataclass(frozen=True)
class PreviewRow:
    """Final classification of one row.

    status: valid | inserted | failed | skipped
    """
    row: int
    status: str
    data: dict[str, Any]
    raw: dict[str, Any]
    errors: tuple[str, ...] = ()
    skip_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "row": self.row,
            "status": self.status,
            "data": dict(self.data),
            "errors": list(self.errors),
            "raw": dict(self.raw),
        }
        # skip_reason は存在時のみ出力
        if self.skip_reason:
            out["skip_reason"] = self.skip_reason
        return out


@dataclass(frozen=True)
class ImportSummary:
    """Aggregated result of one import run.

    Counts are never truncated; ``failed_rows``, ``skipped_rows`` and
    ``preview_rows`` are sorted by row number and capped for display.
    """
    import_type: ImportType
    mode: ImportMode
    total_rows: int
    valid_count: int
    inserted_count: int
    failed_count: int
    skipped_count: int
    failed_rows: tuple[ImportRowError, ...]
    skipped_rows: tuple[ImportRowSkip, ...]
    preview_rows: tuple[PreviewRow, ...]

    def to_dict(self) -> dict[str, Any]:
        counts = {
            k: v
            for k, v in asdict(self).items()
            if k.endswith("_count") or k == "total_rows"
        }
        return {
            "import_type": self.import_type.value,
            "mode": self.mode.value,
            **counts,
            "failed_rows": [r.to_dict() for r in self.failed_rows],
            "skipped_rows": [r.to_dict() for r in self.skipped_rows],
            "preview_rows": [r.to_dict() for r in self.preview_rows],
        }
