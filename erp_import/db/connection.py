from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from ..models.config_models import ImportConfig

"""psycopg2 connection helpers.

接続情報の解決優先順位:
    1. `.env` (CLI 起動時に override=True で読み込み済み) / 既存の環境変数
       - DATABASE_URL / PGDSN があれば DSN 全体をそのまま使用
       - 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    2. 設定ファイルの database セクション (不足分のフォールバック)
"""

__all__ = [
    "db_connection",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)


def resolve_dsn(cfg: ImportConfig) -> str:
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(cfg: ImportConfig) -> Iterator[Any]:
    """Yield an open psycopg2 connection (autocommit off) and close it afterwards.

    Transaction boundaries belong to the pipeline; this helper never commits.
    """
    conn = psycopg2.connect(resolve_dsn(cfg))
    conn.autocommit = False
    logger.debug("connected to database")
    try:
        yield conn
    finally:
        conn.close()
