"""Source schema discovery and archive table provisioning."""

from typing import Any, Optional

from structlog import BoundLogger

from archival.database import ArchiveDatabase
from archival.exceptions import DatabaseError, SchemaError
from archival.models import TIMESTAMP_COLUMN, ColumnInfo, TableSchema
from archival.source_database import SourceDatabase
from archival.type_mapping import ArchiveType, lookup, translate_default
from utils import safe_identifier
from utils.logging import get_logger

_DISCOVER_COLUMNS_QUERY = """
    SELECT
        COLUMN_NAME AS column_name,
        DATA_TYPE AS data_type,
        COLUMN_TYPE AS column_type,
        IS_NULLABLE AS is_nullable,
        COLUMN_DEFAULT AS column_default,
        CHARACTER_MAXIMUM_LENGTH AS max_length,
        COLUMN_KEY AS column_key
    FROM INFORMATION_SCHEMA.COLUMNS
    WHERE TABLE_SCHEMA = DATABASE()
      AND TABLE_NAME = %s
    ORDER BY ORDINAL_POSITION
"""

_ARCHIVE_TABLE_EXISTS_QUERY = """
    SELECT EXISTS (
        SELECT 1
        FROM information_schema.tables
        WHERE table_schema = $1
          AND table_name = $2
    )
"""


def column_from_catalog(row: dict[str, Any]) -> ColumnInfo:
    """Build a ColumnInfo from one INFORMATION_SCHEMA.COLUMNS row."""
    column_type = (row.get("column_type") or "").lower()
    max_length = row.get("max_length")
    return ColumnInfo(
        column_name=row["column_name"],
        data_type=row["data_type"],
        is_nullable=str(row.get("is_nullable", "YES")).upper() == "YES",
        is_primary_key=row.get("column_key") == "PRI",
        default_value=row.get("column_default"),
        max_length=int(max_length) if max_length is not None else None,
        is_unsigned="unsigned" in column_type,
    )


def index_name(table_name: str) -> str:
    return f"idx_{table_name}_{TIMESTAMP_COLUMN}"


def build_column_definition(
    column: ColumnInfo,
    mapping: Optional[dict[str, ArchiveType]] = None,
) -> str:
    """Render one archive column definition: name, type, nullability, default."""
    archive_type = lookup(column, mapping)
    parts = [safe_identifier(column.column_name), archive_type.render(column.max_length)]
    if not column.is_nullable or column.is_primary_key:
        parts.append("NOT NULL")
    default = translate_default(column, archive_type)
    if default is not None:
        parts.append(f"DEFAULT {default}")
    return " ".join(parts)


def build_create_table_sql(
    schema: TableSchema,
    schema_name: str = "public",
    mapping: Optional[dict[str, ArchiveType]] = None,
) -> str:
    """Generate the archive-side CREATE TABLE IF NOT EXISTS statement.

    Args:
        schema: Discovered source table schema
        schema_name: Archive schema holding the table
        mapping: Dialect pair table (defaults to MySQL -> PostgreSQL)

    Returns:
        DDL statement; columns keep the source declaration order

    Raises:
        SchemaError: If the schema has no columns
        ValueError: If a table or column name is not a valid identifier
    """
    if not schema.columns:
        raise SchemaError(
            "Cannot create archive table without columns",
            context={"table": schema.table_name},
        )

    definitions = [build_column_definition(c, mapping) for c in schema.columns]
    primary_key = [safe_identifier(c.column_name) for c in schema.primary_key_columns]
    if primary_key:
        definitions.append(f"PRIMARY KEY ({', '.join(primary_key)})")

    body = ",\n    ".join(definitions)
    table = f"{safe_identifier(schema_name)}.{safe_identifier(schema.table_name)}"
    return f"CREATE TABLE IF NOT EXISTS {table} (\n    {body}\n)"


def build_index_sql(schema: TableSchema, schema_name: str = "public") -> Optional[str]:
    """Generate the index on the table's created_at column, if it has one."""
    column = schema.find_column(TIMESTAMP_COLUMN)
    if column is None:
        return None

    table = f"{safe_identifier(schema_name)}.{safe_identifier(schema.table_name)}"
    return (
        f"CREATE INDEX IF NOT EXISTS {safe_identifier(index_name(schema.table_name))} "
        f"ON {table} ({safe_identifier(column.column_name)})"
    )


class SchemaTranslator:
    """Discovers source table structure and provisions archive tables."""

    def __init__(
        self,
        source_db: SourceDatabase,
        archive_db: ArchiveDatabase,
        mapping: Optional[dict[str, ArchiveType]] = None,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        """Initialize schema translator.

        Args:
            source_db: Source store manager
            archive_db: Archive store manager
            mapping: Dialect pair table (defaults to MySQL -> PostgreSQL)
            logger: Optional logger instance
        """
        self.source_db = source_db
        self.archive_db = archive_db
        self.mapping = mapping
        self.logger = logger or get_logger("schema_translator")

    async def discover_schema(self, table_name: str) -> TableSchema:
        """Read a source table's columns from the catalog.

        The schema is read fresh on every call.

        Args:
            table_name: Source table name

        Returns:
            Table schema with columns in declaration order

        Raises:
            SchemaError: If the table does not exist or the catalog query fails
        """
        try:
            rows = await self.source_db.fetch(_DISCOVER_COLUMNS_QUERY, table_name)
        except DatabaseError as e:
            raise SchemaError(
                f"Failed to read catalog for table {table_name}: {e.message}",
                context={"table": table_name},
            ) from e

        if not rows:
            raise SchemaError(
                "Table not found or no columns",
                context={"table": table_name},
            )

        schema = TableSchema(table_name, [column_from_catalog(row) for row in rows])
        self.logger.debug(
            "Schema discovered",
            table=table_name,
            columns=len(schema.columns),
            primary_key=[c.column_name for c in schema.primary_key_columns],
        )
        return schema

    async def archive_table_exists(self, table_name: str) -> bool:
        """Check whether the archive store already has a table of that name."""
        result = await self.archive_db.fetchval(
            _ARCHIVE_TABLE_EXISTS_QUERY, self.archive_db.schema_name, table_name
        )
        return bool(result)

    async def create_archive_table(self, schema: TableSchema) -> bool:
        """Create the archive table and its created_at index if absent.

        Safe to call repeatedly; both statements are IF NOT EXISTS and run in
        one archive transaction.

        Returns:
            True once the table and index exist

        Raises:
            SchemaError: If the DDL cannot be generated or executed
        """
        schema_name = self.archive_db.schema_name
        try:
            create_table = build_create_table_sql(schema, schema_name, self.mapping)
            create_index = build_index_sql(schema, schema_name)
        except ValueError as e:
            raise SchemaError(str(e), context={"table": schema.table_name}) from e

        try:
            async with self.archive_db.transaction() as conn:
                await conn.execute(create_table)
                if create_index:
                    await conn.execute(create_index)
        except (DatabaseError, SchemaError):
            raise
        except Exception as e:
            raise SchemaError(
                f"Failed to create archive table: {e}",
                context={"table": schema.table_name, "schema": schema_name},
            ) from e

        self.logger.info(
            "Archive table provisioned",
            table=schema.table_name,
            schema=schema_name,
            indexed=create_index is not None,
        )
        return True
