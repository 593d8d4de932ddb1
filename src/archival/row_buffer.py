"""Typed row buffer for rows in flight between the source and archive stores.

Rows are held as ordered tuples of tagged values, aligned positionally with
the TableSchema column order. The raw driver values are kept alongside so
that source-side deletes and cursor positions use the exact source keys,
while the archive side receives the converted values.
"""

import json
import re
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, NamedTuple, Optional

from archival.models import TIMESTAMP_COLUMN, TableSchema
from archival.type_mapping import ArchiveType, ValueTag, lookup

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def narrow_to_int64(value: int) -> int:
    """Fold an integer into the signed 64-bit range by two's-complement wrap.

    Unsigned BIGINT values above 2**63 - 1 become negative; the mapping is
    deterministic and reversible (add 2**64 to recover the source value).
    """
    if INT64_MIN <= value <= INT64_MAX:
        return value
    return ((value - INT64_MIN) % 2**64) + INT64_MIN


class TaggedValue(NamedTuple):
    """A single archive-ready value with its family tag."""

    tag: ValueTag
    value: Any


NULL_VALUE = TaggedValue(ValueTag.NULL, None)

# MySQL zero dates sort before every real date; they keep that place in the
# archive so NOT NULL temporal columns still accept them.
ZERO_DATETIME = datetime.min
ZERO_DATE = date.min

_TIME_RE = re.compile(r"^(-)?(\d+):(\d{2}):(\d{2})(?:\.(\d{1,6}))?$")


def _parse_temporal(raw: str, parser: Any, zero: Any) -> Any:
    # Zero dates ('0000-00-00') reach the client as unparsed strings
    try:
        return parser(raw)
    except ValueError:
        return zero


def _to_integer(raw: Any) -> int:
    if isinstance(raw, bytes):
        return narrow_to_int64(int.from_bytes(raw, "big"))
    return narrow_to_int64(int(raw))


def _to_decimal(raw: Any) -> Decimal:
    if isinstance(raw, Decimal):
        return raw
    return Decimal(str(raw))


def _to_text(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        # Spatial and other byte-valued types: lossless, NUL-free hex
        return "\\x" + bytes(raw).hex()
    if isinstance(raw, (set, frozenset)):
        return ",".join(sorted(str(item) for item in raw))
    return str(raw)


def _to_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime.combine(raw, time())
    return _parse_temporal(str(raw), datetime.fromisoformat, ZERO_DATETIME)


def _to_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return _parse_temporal(str(raw), date.fromisoformat, ZERO_DATE)


def _to_interval(raw: Any) -> timedelta:
    if isinstance(raw, timedelta):
        return raw
    if isinstance(raw, time):
        return timedelta(
            hours=raw.hour, minutes=raw.minute, seconds=raw.second, microseconds=raw.microsecond
        )
    match = _TIME_RE.match(str(raw).strip())
    if not match:
        raise ValueError(f"Unreadable TIME value: {raw!r}")
    sign, hours, minutes, seconds, fraction = match.groups()
    value = timedelta(
        hours=int(hours),
        minutes=int(minutes),
        seconds=int(seconds),
        microseconds=int((fraction or "0").ljust(6, "0")),
    )
    return -value if sign else value


def _to_json(raw: Any) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8")
    if isinstance(raw, str):
        return raw
    return json.dumps(raw, default=str)


def _to_binary(raw: Any) -> bytes:
    if isinstance(raw, str):
        return raw.encode("utf-8")
    return bytes(raw)


_CONVERTERS = {
    ValueTag.INTEGER: _to_integer,
    ValueTag.FLOAT: float,
    ValueTag.DECIMAL: _to_decimal,
    ValueTag.TEXT: _to_text,
    ValueTag.BOOLEAN: bool,
    ValueTag.TIMESTAMP: _to_timestamp,
    ValueTag.DATE: _to_date,
    ValueTag.TIME: _to_interval,
    ValueTag.JSON: _to_json,
    ValueTag.BINARY: _to_binary,
}


def tag_value(tag: ValueTag, raw: Any) -> TaggedValue:
    """Convert one raw driver value into a tagged archive value.

    Args:
        tag: Value family of the column
        raw: Value as returned by the source driver

    Returns:
        Tagged value; source nulls become NULL

    Raises:
        ValueError: If the value cannot be represented in its family
    """
    if raw is None or tag is ValueTag.NULL:
        return NULL_VALUE
    return TaggedValue(tag, _CONVERTERS[tag](raw))


class TypedRow:
    """One extracted row: tagged archive values plus the raw source values."""

    __slots__ = ("values", "source")

    def __init__(self, values: tuple[TaggedValue, ...], source: tuple[Any, ...]) -> None:
        self.values = values
        self.source = source

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, position: int) -> TaggedValue:
        return self.values[position]

    def as_parameters(self) -> tuple[Any, ...]:
        """Archive insert parameters, in schema column order."""
        return tuple(v.value for v in self.values)

    def source_values(self, positions: Sequence[int]) -> tuple[Any, ...]:
        return tuple(self.source[p] for p in positions)


class RowLayout:
    """Column positions and value tags derived once per table schema."""

    def __init__(
        self,
        schema: TableSchema,
        mapping: Optional[dict[str, ArchiveType]] = None,
        timestamp_column: str = TIMESTAMP_COLUMN,
    ) -> None:
        """Initialize the row layout.

        Args:
            schema: Source table schema; its column order is the row order
            mapping: Dialect pair table used to pick value tags
            timestamp_column: Column the move is ordered and paged by

        Raises:
            KeyError: If the schema lacks the timestamp column
        """
        self.schema = schema
        self.tags: tuple[ValueTag, ...] = tuple(lookup(c, mapping).tag for c in schema.columns)
        self.primary_key_positions: tuple[int, ...] = tuple(
            schema.index_of(c.column_name) for c in schema.primary_key_columns
        )
        self.timestamp_position = schema.index_of(timestamp_column)

    def decode(self, raw: Sequence[Any]) -> TypedRow:
        """Build a typed row from a raw driver tuple.

        Raises:
            ValueError: If the raw row does not match the schema width, or a
                value cannot be converted
        """
        if len(raw) != len(self.tags):
            raise ValueError(
                f"Row has {len(raw)} values but table {self.schema.table_name} "
                f"has {len(self.tags)} columns"
            )
        values = tuple(tag_value(tag, value) for tag, value in zip(self.tags, raw))
        return TypedRow(values, tuple(raw))

    def key(self, row: TypedRow) -> tuple[Any, ...]:
        """Primary-key values of a row, as the source stores them."""
        return row.source_values(self.primary_key_positions)

    def cursor(self, row: TypedRow) -> tuple[Any, ...]:
        """Pagination cursor of a row: timestamp followed by primary key."""
        return (row.source[self.timestamp_position], *self.key(row))
