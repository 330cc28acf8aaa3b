from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the spreadsheet import pipeline.

Loaded from YAML by erp_import.config.loader; every field has a default so
the pipeline can run without a config file (library use, tests).
"""

__all__ = [
    "DatabaseConfig",
    "ImportConfig",
]

DEFAULT_PREVIEW_LIMIT = 200
DEFAULT_DETAIL_LIMIT = 200
DEFAULT_MAX_FILE_SIZE_MB = 10


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback configuration.

    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for import runs."""
    schema: str = "ims"  # 対象テーブルの PostgreSQL スキーマ
    preview_limit: int = DEFAULT_PREVIEW_LIMIT
    detail_limit: int = DEFAULT_DETAIL_LIMIT
    max_file_size_mb: int = DEFAULT_MAX_FILE_SIZE_MB
    error_log_dir: str | None = None  # None -> 行エラーログ出力なし
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def max_file_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024
