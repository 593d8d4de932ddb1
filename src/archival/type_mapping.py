"""Source-to-archive column type mapping, expressed as data.

Each dialect pair is a plain dictionary keyed by the normalized source type
name. The translator and the row buffer only consult these tables, so adding
a dialect pair means adding a dictionary, not another branch.
"""

import re
from enum import Enum
from typing import NamedTuple, Optional

from archival.models import ColumnInfo


class ValueTag(Enum):
    """Value family of a column, used to tag row buffer entries."""

    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    TEXT = "text"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    DATE = "date"
    TIME = "time"
    JSON = "json"
    BINARY = "binary"
    NULL = "null"


class ArchiveType(NamedTuple):
    """Archive-side rendering of one source type."""

    name: str
    tag: ValueTag
    default_length: Optional[int] = None

    @property
    def is_sized(self) -> bool:
        return self.default_length is not None

    def render(self, max_length: Optional[int] = None) -> str:
        if not self.is_sized:
            return self.name
        return f"{self.name}({max_length or self.default_length})"


# Unknown source types archive as free-form text so an unrecognised
# column never blocks archival of the table; byte values are hex-encoded.
FALLBACK_TYPE = ArchiveType("TEXT", ValueTag.TEXT)

MYSQL_TO_POSTGRES: dict[str, ArchiveType] = {
    "varchar": ArchiveType("VARCHAR", ValueTag.TEXT, 255),
    "char": ArchiveType("CHAR", ValueTag.TEXT, 255),
    "text": ArchiveType("TEXT", ValueTag.TEXT),
    "tinytext": ArchiveType("TEXT", ValueTag.TEXT),
    "mediumtext": ArchiveType("TEXT", ValueTag.TEXT),
    "longtext": ArchiveType("TEXT", ValueTag.TEXT),
    "tinyint": ArchiveType("SMALLINT", ValueTag.INTEGER),
    "smallint": ArchiveType("SMALLINT", ValueTag.INTEGER),
    "mediumint": ArchiveType("INTEGER", ValueTag.INTEGER),
    "int": ArchiveType("INTEGER", ValueTag.INTEGER),
    "integer": ArchiveType("INTEGER", ValueTag.INTEGER),
    "bigint": ArchiveType("BIGINT", ValueTag.INTEGER),
    "bit": ArchiveType("BIGINT", ValueTag.INTEGER),
    "year": ArchiveType("INTEGER", ValueTag.INTEGER),
    "decimal": ArchiveType("DECIMAL", ValueTag.DECIMAL),
    "numeric": ArchiveType("NUMERIC", ValueTag.DECIMAL),
    "float": ArchiveType("REAL", ValueTag.FLOAT),
    "double": ArchiveType("DOUBLE PRECISION", ValueTag.FLOAT),
    "datetime": ArchiveType("TIMESTAMP", ValueTag.TIMESTAMP),
    "timestamp": ArchiveType("TIMESTAMP", ValueTag.TIMESTAMP),
    "date": ArchiveType("DATE", ValueTag.DATE),
    # MySQL TIME is a signed duration up to 838:59:59, not a time of day
    "time": ArchiveType("INTERVAL", ValueTag.TIME),
    "boolean": ArchiveType("BOOLEAN", ValueTag.BOOLEAN),
    "bool": ArchiveType("BOOLEAN", ValueTag.BOOLEAN),
    "json": ArchiveType("JSON", ValueTag.JSON),
    "blob": ArchiveType("BYTEA", ValueTag.BINARY),
    "tinyblob": ArchiveType("BYTEA", ValueTag.BINARY),
    "mediumblob": ArchiveType("BYTEA", ValueTag.BINARY),
    "longblob": ArchiveType("BYTEA", ValueTag.BINARY),
    "binary": ArchiveType("BYTEA", ValueTag.BINARY),
    "varbinary": ArchiveType("BYTEA", ValueTag.BINARY),
}

# Unsigned integers need the next width class to hold their full range.
# BIGINT has no wider class; its overflow is narrowed in the row buffer.
UNSIGNED_PROMOTIONS: dict[str, ArchiveType] = {
    "SMALLINT": ArchiveType("INTEGER", ValueTag.INTEGER),
    "INTEGER": ArchiveType("BIGINT", ValueTag.INTEGER),
}

_CURRENT_TIMESTAMP_RE = re.compile(
    r"^(current_timestamp|now|localtimestamp)(\(\d*\))?$", re.IGNORECASE
)
_NUMERIC_LITERAL_RE = re.compile(r"^-?\d+(\.\d+)?$")
_NUMERIC_TAGS = (ValueTag.INTEGER, ValueTag.FLOAT, ValueTag.DECIMAL)


def lookup(
    column: ColumnInfo,
    mapping: Optional[dict[str, ArchiveType]] = None,
) -> ArchiveType:
    """Resolve the archive type for a source column.

    Args:
        column: Source column
        mapping: Dialect pair table (defaults to MySQL -> PostgreSQL)

    Returns:
        Archive type, falling back to TEXT for unmapped source types
    """
    table = MYSQL_TO_POSTGRES if mapping is None else mapping
    archive_type = table.get(column.normalized_type, FALLBACK_TYPE)
    if column.is_unsigned:
        archive_type = UNSIGNED_PROMOTIONS.get(archive_type.name, archive_type)
    return archive_type


def archive_column_type(
    column: ColumnInfo,
    mapping: Optional[dict[str, ArchiveType]] = None,
) -> str:
    """Render the archive column type, including length for bounded text."""
    return lookup(column, mapping).render(column.max_length)


def translate_default(column: ColumnInfo, archive_type: ArchiveType) -> Optional[str]:
    """Translate a source default into an archive-side DEFAULT expression.

    Only defaults with an unambiguous meaning in the archive dialect are
    carried over; everything else is dropped.

    Args:
        column: Source column
        archive_type: Resolved archive type of the column

    Returns:
        SQL default expression, or None to omit the DEFAULT clause
    """
    if column.default_value is None:
        return None

    value = column.default_value.strip()
    if not value or value.upper() == "NULL":
        return None
    # MySQL 8 expression defaults, e.g. (uuid())
    if value.startswith("(") and value.endswith(")"):
        return None

    if archive_type.tag is ValueTag.TIMESTAMP:
        return "CURRENT_TIMESTAMP" if _CURRENT_TIMESTAMP_RE.match(value) else None

    unquoted = value
    if len(value) >= 2 and value[0] == value[-1] == "'":
        unquoted = value[1:-1].replace("''", "'")

    if archive_type.tag in _NUMERIC_TAGS:
        return unquoted if _NUMERIC_LITERAL_RE.match(unquoted) else None

    if archive_type.tag is ValueTag.TEXT:
        escaped = unquoted.replace("'", "''")
        return f"'{escaped}'"

    return None
