"""Domain models for the ERP spreadsheet import pipeline.

Row lifecycle, summary output, schema shapes and configuration.
"""

from .candidate_row import CandidateRow, ParseResult, RowOutcome, RowState
from .config_models import DatabaseConfig, ImportConfig
from .error_record import ErrorRecord
from .import_rows import CustomerImportRow, ItemImportRow, SupplierImportRow
from .import_types import ImportMode, ImportType
from .parsed_sheet import ParsedRow, ParsedSheet
from .shapes import CustomerShape, ItemShape, SupplierShape
from .summary import ImportRowError, ImportRowSkip, ImportSummary, PreviewRow

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Selectors
    "ImportMode",
    "ImportType",
    # Decoded input
    "ParsedRow",
    "ParsedSheet",
    # Row processing
    "CandidateRow",
    "CustomerImportRow",
    "ItemImportRow",
    "ParseResult",
    "RowOutcome",
    "RowState",
    "SupplierImportRow",
    # Schema shapes
    "CustomerShape",
    "ItemShape",
    "SupplierShape",
    # Output
    "ErrorRecord",
    "ImportRowError",
    "ImportRowSkip",
    "ImportSummary",
    "PreviewRow",
]
