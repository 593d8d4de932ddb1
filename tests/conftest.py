"""Pytest configuration and shared fixtures.

The fake stores understand exactly the statements the archival components
issue, which lets engine scenarios run end to end without a MySQL or
PostgreSQL server.
"""

import copy
import re
from datetime import datetime
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any, Optional

import pytest

from archival.batch_mover import PAGE_SIZE, BatchMover
from archival.config_provider import StaticConfigProvider
from archival.engine import ArchivalEngine
from archival.exceptions import DatabaseError
from archival.models import ArchiveConfig, ColumnInfo, TableSchema, utc_now
from archival.retention_purger import RetentionPurger
from archival.run_log import RunLog
from archival.schema_translator import SchemaTranslator

_MYSQL_TABLE_RE = re.compile(r"FROM `(\w+)`")
_PG_CREATE_RE = re.compile(r'CREATE TABLE IF NOT EXISTS "(\w+)"\."(\w+)"')
_PG_COLUMN_RE = re.compile(r'^\s+"(\w+)" ', re.MULTILINE)
_PG_PRIMARY_KEY_RE = re.compile(r"PRIMARY KEY \(([^)]*)\)")
_PG_INSERT_RE = re.compile(r'INSERT INTO "(\w+)"\."(\w+)" \(([^)]*)\)')
_PG_PURGE_RE = re.compile(r'DELETE FROM "(\w+)"\."(\w+)" WHERE "(\w+)" < \$1')
_QUOTED_RE = re.compile(r'"(\w+)"')
_PG_NOT_NULL_RE = re.compile(r'^\s+"(\w+)" [^\n]*NOT NULL', re.MULTILINE)


def _mysql_order(value: Any) -> Any:
    # MySQL zero dates compare below every real date
    if isinstance(value, str) and value.startswith("0000-00-00"):
        return datetime.min
    return value


class FakeSourceTable:
    def __init__(self, schema: TableSchema, rows: list[tuple[Any, ...]]) -> None:
        self.schema = schema
        self.rows = list(rows)
        self.key_positions = [
            i for i, c in enumerate(schema.columns) if c.is_primary_key
        ]
        ts = schema.find_column("created_at")
        self.ts_position = schema.index_of(ts.column_name) if ts else None

    def key(self, row: tuple[Any, ...]) -> tuple[Any, ...]:
        return tuple(row[i] for i in self.key_positions)

    def sort_key(self, row: tuple[Any, ...]) -> tuple[Any, ...]:
        return (_mysql_order(row[self.ts_position]), *self.key(row))


class FakeSourceCursor:
    def __init__(self, db: "FakeSourceDatabase") -> None:
        self.db = db
        self.rowcount = 0

    async def execute(self, query: str, params: Any = None) -> int:
        self.db.statements.append(query)
        if self.db.fail_deletes:
            raise RuntimeError("source delete failed")
        match = re.search(r"DELETE FROM `(\w+)`", query)
        if not match:
            raise AssertionError(f"Unexpected source statement: {query}")

        table = self.db.tables[match.group(1)]
        width = len(table.key_positions)
        params = list(params or [])
        keys = {tuple(params[i : i + width]) for i in range(0, len(params), width)}
        before = len(table.rows)
        table.rows = [r for r in table.rows if table.key(r) not in keys]
        self.rowcount = before - len(table.rows)
        return self.rowcount


class FakeSourceDatabase:
    """In-memory MySQL stand-in with the SourceDatabase call surface."""

    def __init__(self) -> None:
        self.tables: dict[str, FakeSourceTable] = {}
        self.statements: list[str] = []
        self.fail_catalog = False
        self.fail_deletes = False

    def add_table(self, schema: TableSchema, rows: Optional[list[tuple[Any, ...]]] = None) -> None:
        self.tables[schema.table_name] = FakeSourceTable(schema, rows or [])

    def rows(self, table_name: str) -> list[tuple[Any, ...]]:
        return list(self.tables[table_name].rows)

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        self.statements.append(query)
        if "INFORMATION_SCHEMA.COLUMNS" not in query:
            raise AssertionError(f"Unexpected source query: {query}")
        if self.fail_catalog:
            raise DatabaseError("catalog unavailable")

        table = self.tables.get(args[0])
        if table is None:
            return []
        return [
            {
                "column_name": c.column_name,
                "data_type": c.data_type,
                "column_type": f"{c.data_type} unsigned" if c.is_unsigned else c.data_type,
                "is_nullable": "YES" if c.is_nullable else "NO",
                "column_default": c.default_value,
                "max_length": c.max_length,
                "column_key": "PRI" if c.is_primary_key else "",
            }
            for c in table.schema.columns
        ]

    async def fetch_rows(self, query: str, *args: Any) -> list[tuple[Any, ...]]:
        self.statements.append(query)
        table = self.tables[_MYSQL_TABLE_RE.search(query).group(1)]
        cutoff = args[0]
        eligible = [r for r in table.rows if _mysql_order(r[table.ts_position]) < cutoff]

        if query.startswith("SELECT COUNT(*)"):
            return [(len(eligible),)]

        limit = args[-1]
        cursor = tuple(_mysql_order(v) for v in args[1:-1])
        if cursor:
            eligible = [r for r in eligible if table.sort_key(r) > cursor]
        eligible.sort(key=table.sort_key)
        return eligible[:limit]

    async def fetchval(self, query: str, *args: Any) -> Any:
        rows = await self.fetch_rows(query, *args)
        return rows[0][0] if rows else None

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[FakeSourceCursor, None]:
        snapshot = {name: list(t.rows) for name, t in self.tables.items()}
        try:
            yield FakeSourceCursor(self)
        except BaseException:
            for name, rows in snapshot.items():
                self.tables[name].rows = rows
            raise


class FakeArchiveTable:
    def __init__(
        self, columns: list[str], primary_key: list[str], not_null: Optional[list[str]] = None
    ) -> None:
        self.columns = columns
        self.primary_key = primary_key
        self.not_null = set(not_null or [])
        self.rows: list[dict[str, Any]] = []

    def key(self, row: dict[str, Any]) -> tuple[Any, ...]:
        return tuple(row[c] for c in self.primary_key)


class FakeArchiveConnection:
    def __init__(self, db: "FakeArchiveDatabase") -> None:
        self.db = db

    async def execute(self, query: str, *args: Any) -> str:
        return await self.db.execute(query, *args)

    async def executemany(self, query: str, args_list: list[tuple[Any, ...]]) -> None:
        self.db.statements.append(query)
        match = _PG_INSERT_RE.search(query)
        if not match:
            raise AssertionError(f"Unexpected archive statement: {query}")
        table = self.db.tables[match.group(2)]
        columns = _QUOTED_RE.findall(match.group(3))

        for params in args_list:
            row = dict(zip(columns, params))
            if self.db.reject_row is not None and self.db.reject_row(row):
                raise RuntimeError(f"insert rejected: {row}")
            for column, value in row.items():
                if value is None and column in table.not_null:
                    raise RuntimeError(f'null value in column "{column}" violates not-null constraint')
                if isinstance(value, str) and "\x00" in value:
                    raise RuntimeError("invalid byte sequence for encoding \"UTF8\": 0x00")
            # ON CONFLICT DO NOTHING
            if table.primary_key and any(table.key(r) == table.key(row) for r in table.rows):
                continue
            table.rows.append(row)


class FakeArchiveDatabase:
    """In-memory PostgreSQL stand-in with the ArchiveDatabase call surface."""

    def __init__(self, schema_name: str = "public") -> None:
        self.schema_name = schema_name
        self.tables: dict[str, FakeArchiveTable] = {}
        self.indexes: list[str] = []
        self.statements: list[str] = []
        self.logs: list[dict[str, Any]] = []
        self.configs: dict[str, dict[str, Any]] = {}
        self.reject_row: Optional[Callable[[dict[str, Any]], bool]] = None
        self.fail_log_writes = False
        self.fail_config_reads = False

    def rows(self, table_name: str) -> list[dict[str, Any]]:
        return list(self.tables[table_name].rows)

    async def ensure_schema(self) -> None:
        await self.execute(f'CREATE SCHEMA IF NOT EXISTS "{self.schema_name}"')

    def add_config(self, config: ArchiveConfig) -> None:
        self.configs[config.table_name] = {
            "id": len(self.configs) + 1,
            "table_name": config.table_name,
            "archive_after_days": config.archive_after_days,
            "delete_after_days": config.delete_after_days,
            "is_enabled": config.is_enabled,
            "created_at": utc_now(),
            "updated_at": utc_now(),
        }

    async def execute(self, query: str, *args: Any) -> str:
        self.statements.append(query)
        create = _PG_CREATE_RE.search(query)
        if create:
            name = create.group(2)
            if name not in self.tables:
                pk = _PG_PRIMARY_KEY_RE.search(query)
                self.tables[name] = FakeArchiveTable(
                    _PG_COLUMN_RE.findall(query),
                    _QUOTED_RE.findall(pk.group(1)) if pk else [],
                    _PG_NOT_NULL_RE.findall(query),
                )
            return "CREATE TABLE"
        if "CREATE INDEX" in query:
            self.indexes.append(query)
            return "CREATE INDEX"
        if "CREATE SCHEMA" in query:
            return "CREATE SCHEMA"

        purge = _PG_PURGE_RE.search(query)
        if purge:
            table = self.tables[purge.group(2)]
            column = purge.group(3)
            before = len(table.rows)
            table.rows = [r for r in table.rows if not r[column] < args[0]]
            return f"DELETE {before - len(table.rows)}"

        raise AssertionError(f"Unexpected archive statement: {query}")

    async def fetchval(self, query: str, *args: Any) -> Any:
        self.statements.append(query)
        if "information_schema.tables" in query:
            return args[1] in self.tables
        if "archive_log" in query and "INSERT INTO" in query:
            if self.fail_log_writes:
                raise DatabaseError("archive_log unavailable")
            entry_id = len(self.logs) + 1
            self.logs.append(
                {
                    "id": entry_id,
                    "table_name": args[0],
                    "records_archived": args[1],
                    "records_deleted": args[2],
                    "archive_date": args[3],
                    "status": args[4],
                    "error_message": args[5],
                }
            )
            return entry_id
        raise AssertionError(f"Unexpected archive query: {query}")

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        self.statements.append(query)
        if "archive_log" in query:
            entries = list(self.logs)
            if "WHERE table_name" in query:
                entries = [e for e in entries if e["table_name"] == args[0]]
            entries.sort(key=lambda e: (e["archive_date"], e["id"]), reverse=True)
            return entries[: args[-1]]
        if "archive_config" in query:
            if self.fail_config_reads:
                raise DatabaseError("archive_config unavailable")
            return [self.configs[name] for name in sorted(self.configs)]
        raise AssertionError(f"Unexpected archive query: {query}")

    async def fetchrow(self, query: str, *args: Any) -> Optional[dict[str, Any]]:
        self.statements.append(query)
        if "archive_config" in query:
            if self.fail_config_reads:
                raise DatabaseError("archive_config unavailable")
            return self.configs.get(args[0])
        raise AssertionError(f"Unexpected archive query: {query}")

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[FakeArchiveConnection, None]:
        snapshot = {name: list(t.rows) for name, t in self.tables.items()}
        try:
            yield FakeArchiveConnection(self)
        except BaseException:
            for name, rows in snapshot.items():
                self.tables[name].rows = rows
            raise


@pytest.fixture
def orders_schema() -> TableSchema:
    """Source schema of an orders table keyed by id."""
    return TableSchema(
        "orders",
        [
            ColumnInfo("id", "int", is_nullable=False, is_primary_key=True),
            ColumnInfo("customer", "varchar", is_nullable=False, max_length=100),
            ColumnInfo("amount", "decimal", default_value="0.00"),
            ColumnInfo("created_at", "datetime", is_nullable=False, default_value="CURRENT_TIMESTAMP"),
        ],
    )


@pytest.fixture
def source_db() -> FakeSourceDatabase:
    return FakeSourceDatabase()


@pytest.fixture
def archive_db() -> FakeArchiveDatabase:
    return FakeArchiveDatabase()


@pytest.fixture
def make_engine(
    source_db: FakeSourceDatabase,
    archive_db: FakeArchiveDatabase,
) -> Callable[..., ArchivalEngine]:
    """Build an engine over the fake stores with the given table configs."""

    def factory(
        configs: list[ArchiveConfig],
        page_size: int = PAGE_SIZE,
        metrics: Any = None,
    ) -> ArchivalEngine:
        return ArchivalEngine(
            config_provider=StaticConfigProvider(copy.deepcopy(configs)),
            translator=SchemaTranslator(source_db, archive_db),
            mover=BatchMover(source_db, archive_db, page_size=page_size),
            purger=RetentionPurger(archive_db),
            run_log=RunLog(archive_db),
            metrics=metrics,
        )

    return factory
