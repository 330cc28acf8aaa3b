from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the row-level error log.

One record per failed or skipped row of an import-mode run, written as
JSON Lines by ErrorLogBuffer. The key set is fixed:
timestamp, import_type, branch_id, row, outcome, reason.
"""

__all__ = [
    "ErrorRecord",
]

RECORD_KEYS = frozenset({"timestamp", "import_type", "branch_id", "row", "outcome", "reason"})


@dataclass(frozen=True)
class ErrorRecord:
    """Structured row outcome record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        import_type: customers | suppliers | items
        branch_id: Branch the import ran against
        row: Spreadsheet line number (1-based, header = 1)
        outcome: failed | skipped
        reason: Human-readable reason (multiple errors joined with "; ")
    """
    timestamp: str
    import_type: str
    branch_id: int
    row: int
    outcome: str
    reason: str

    @staticmethod
    def create(import_type: str, branch_id: int, row: int, outcome: str, reason: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            import_type=import_type,
            branch_id=branch_id,
            row=row,
            outcome=outcome,
            reason=reason,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
