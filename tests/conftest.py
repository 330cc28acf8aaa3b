# Shared pytest fixtures: temp workdir, spreadsheets, fake database
from __future__ import annotations

import copy
import io
import re
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pandas as pd
import psycopg2
import psycopg2.errors
import pytest

from erp_import.db.schema_shape import SchemaShapeResolver
from erp_import.logging.init import reset_logging
from erp_import.models.shapes import CustomerShape, ItemShape, SupplierShape


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """schema: ims
preview_limit: 200
detail_limit: 200
max_file_size_mb: 10
error_log_dir: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


# ---------------------------------------------------------------------------
# spreadsheets
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_xlsx():
    """Build .xlsx bytes from a list of dicts (or a DataFrame) with pandas ExcelWriter."""
    def _make(rows: Any, sheet_name: str = "Sheet1") -> bytes:
        df = rows if isinstance(rows, pd.DataFrame) else pd.DataFrame(rows)
        buf = io.BytesIO()
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet_name, index=False)
        return buf.getvalue()
    return _make


@pytest.fixture()
def make_csv():
    def _make(lines: list[str]) -> bytes:
        return ("\n".join(lines) + "\n").encode("utf-8")
    return _make


# ---------------------------------------------------------------------------
# psycopg2 error fakes (pgcode / diag are read-only on real instances)
# ---------------------------------------------------------------------------
class FakeUniqueViolation(psycopg2.errors.UniqueViolation):
    def __init__(self, constraint: str | None = None, message: str = "duplicate key value violates unique constraint"):
        super().__init__(message)
        self._diag = SimpleNamespace(constraint_name=constraint, message_primary=message)

    @property
    def pgcode(self):  # type: ignore[override]
        return "23505"

    @property
    def diag(self):  # type: ignore[override]
        return self._diag


class FakeForeignKeyViolation(psycopg2.errors.ForeignKeyViolation):
    def __init__(self, message: str = "insert or update violates foreign key constraint"):
        super().__init__(message)
        self._diag = SimpleNamespace(constraint_name="fk", message_primary=message)

    @property
    def pgcode(self):  # type: ignore[override]
        return "23503"

    @property
    def diag(self):  # type: ignore[override]
        return self._diag


class FakeCheckViolation(psycopg2.errors.CheckViolation):
    def __init__(self, message: str = 'new row violates check constraint "chk"'):
        super().__init__(message)
        self._diag = SimpleNamespace(constraint_name="chk", message_primary=message)

    @property
    def pgcode(self):  # type: ignore[override]
        return "23514"

    @property
    def diag(self):  # type: ignore[override]
        return self._diag


@pytest.fixture()
def pg_errors():
    return SimpleNamespace(
        unique=FakeUniqueViolation,
        foreign_key=FakeForeignKeyViolation,
        check=FakeCheckViolation,
    )


# ---------------------------------------------------------------------------
# in-memory database
# ---------------------------------------------------------------------------
UNIQUE_KEYS: dict[str, list[tuple[str, str]]] = {
    "customers": [("phone", "uq_customers_branch_phone")],
    "suppliers": [("supplier_name", "uq_suppliers_branch_name"), ("name", "uq_suppliers_branch_name")],
    "items": [("name", "uq_items_branch_name"), ("barcode", "uq_items_branch_barcode")],
}

ID_COLUMNS = {
    "customers": "customer_id",
    "suppliers": "supplier_id",
    "items": "item_id",
    "categories": "cat_id",
    "stores": "store_id",
}


def _lower(value: Any) -> str | None:
    return str(value).lower() if value is not None else None


class FakeDatabase:
    """Committed state of a tiny ``ims`` schema shared by fake connections."""

    def __init__(self, schema: str = "ims") -> None:
        self.schema = schema
        self.committed: dict[str, list[dict[str, Any]]] = {
            t: [] for t in ("customers", "suppliers", "items", "categories", "stores", "store_items")
        }
        self.fail_on = None  # callable(table, row) -> Exception | None
        self._next_id = 100
        self.connections: list[FakeConnection] = []

    def next_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def seed(self, table: str, **row: Any) -> dict[str, Any]:
        id_col = ID_COLUMNS.get(table)
        if id_col and id_col not in row:
            row[id_col] = self.next_id()
        self.committed[table].append(row)
        # 開いている接続の作業コピーにも反映する
        for conn in self.connections:
            conn.working[table].append(copy.deepcopy(row))
        return row

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.committed[table]

    def connect(self) -> FakeConnection:
        conn = FakeConnection(self)
        self.connections.append(conn)
        return conn


class FakeConnection:
    """psycopg2-like connection: implicit transaction, ``with conn`` commits or rolls back."""

    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.autocommit = False
        self.closed = False
        self.executed: list[tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0
        self.working = copy.deepcopy(db.committed)
        self.savepoints: list[tuple[str, dict[str, list[dict[str, Any]]]]] = []

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.db.committed = copy.deepcopy(self.working)
        self.savepoints.clear()
        self.commits += 1

    def rollback(self) -> None:
        self.working = copy.deepcopy(self.db.committed)
        self.savepoints.clear()
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeConnection:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False

    def statements(self, prefix: str = "") -> list[str]:
        return [sql for sql, _ in self.executed if sql.startswith(prefix)]


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self._result: list[tuple[Any, ...]] = []

    def __enter__(self) -> FakeCursor:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return False

    def close(self) -> None:
        pass

    def fetchone(self):
        return self._result[0] if self._result else None

    def fetchall(self):
        return list(self._result)

    # -- dispatch -----------------------------------------------------------
    def execute(self, sql: str, params: Any = None) -> None:
        text = " ".join(sql.split())
        self.conn.executed.append((text, params))
        self._result = []
        tables = self.conn.working

        m = re.match(r"SAVEPOINT (\w+)$", text)
        if m:
            self.conn.savepoints.append((m.group(1), copy.deepcopy(tables)))
            return
        m = re.match(r"ROLLBACK TO SAVEPOINT (\w+)$", text)
        if m:
            name = m.group(1)
            while self.conn.savepoints and self.conn.savepoints[-1][0] != name:
                self.conn.savepoints.pop()
            self.conn.working = copy.deepcopy(self.conn.savepoints[-1][1])
            return
        m = re.match(r"RELEASE SAVEPOINT (\w+)$", text)
        if m:
            name = m.group(1)
            while self.conn.savepoints:
                if self.conn.savepoints.pop()[0] == name:
                    break
            return

        m = re.match(r"SELECT LOWER\((\w+)\) FROM \w+\.(\w+) WHERE branch_id = %s", text)
        if m:
            column, table = m.groups()
            branch_id, keys = params
            wanted = set(keys)
            found = {
                _lower(r.get(column))
                for r in tables[table]
                if r.get("branch_id") == branch_id and r.get(column) is not None
            }
            self._result = [(k,) for k in sorted(found & wanted)]
            return
        if text.startswith("SELECT store_id FROM"):
            branch_id, ids = params
            self._result = [
                (r["store_id"],)
                for r in tables["stores"]
                if r["branch_id"] == branch_id and r["store_id"] in set(ids)
            ]
            return
        if text.startswith("SELECT cat_id FROM"):
            (branch_id,) = params
            ids = sorted(r["cat_id"] for r in tables["categories"] if r["branch_id"] == branch_id)
            self._result = [(ids[0],)] if ids else []
            return

        m = re.match(r"INSERT INTO \w+\.(\w+) \(([^)]*)\) VALUES", text)
        if m:
            table = m.group(1)
            columns = [c.strip() for c in m.group(2).split(",")]
            row = dict(zip(columns, params))
            self._insert(table, row, returning="RETURNING" in text, upsert="ON CONFLICT" in text)
            return
        raise AssertionError(f"unexpected SQL in fake cursor: {text}")

    def _insert(self, table: str, row: dict[str, Any], *, returning: bool, upsert: bool) -> None:
        tables = self.conn.working
        if self.conn.db.fail_on is not None:
            err = self.conn.db.fail_on(table, row)
            if err is not None:
                raise err
        if table == "store_items" and upsert:
            for existing in tables[table]:
                if (existing["store_id"], existing["product_id"]) == (row["store_id"], row["product_id"]):
                    existing["quantity"] = row["quantity"]
                    return
            tables[table].append(row)
            return
        if table == "items" and row.get("store_id") is not None:
            known = {(s["branch_id"], s["store_id"]) for s in tables["stores"]}
            if (row["branch_id"], row["store_id"]) not in known:
                raise FakeForeignKeyViolation()
        for column, constraint in UNIQUE_KEYS.get(table, []):
            value = row.get(column)
            if value is None:
                continue
            for existing in tables[table]:
                if existing.get("branch_id") == row.get("branch_id") and _lower(existing.get(column)) == _lower(value):
                    raise FakeUniqueViolation(constraint)
        id_col = ID_COLUMNS.get(table)
        if id_col:
            row[id_col] = self.conn.db.next_id()
        tables[table].append(row)
        if returning and id_col:
            self._result = [(row[id_col],)]


@pytest.fixture()
def fake_db() -> FakeDatabase:
    db = FakeDatabase()
    db.seed("stores", store_id=1, branch_id=1, store_name="Main")
    db.seed("stores", store_id=2, branch_id=1, store_name="Annex")
    db.seed("stores", store_id=3, branch_id=2, store_name="Other branch")
    return db


@pytest.fixture()
def connection(fake_db: FakeDatabase) -> FakeConnection:
    return fake_db.connect()


@pytest.fixture()
def shapes() -> dict[str, Any]:
    return {
        "customers": CustomerShape(),
        "suppliers": SupplierShape(),
        "items": ItemShape(),
    }


@pytest.fixture()
def resolver(shapes) -> SchemaShapeResolver:
    return SchemaShapeResolver(schema="ims", shapes=shapes)
