"""Domain records shared by the archival components."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

TIMESTAMP_COLUMN = "created_at"


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns of both stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ArchiveStatus(Enum):
    """Lifecycle states of one archival attempt."""

    STARTED = "Started"
    SKIPPED = "Skipped"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ArchiveStatus.STARTED


class ArchiveConfig:
    """Archival settings for one source table."""

    def __init__(
        self,
        table_name: str,
        archive_after_days: int,
        delete_after_days: Optional[int] = None,
        is_enabled: bool = True,
        id: Optional[int] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        """Initialize archive config.

        Args:
            table_name: Source table name (unique key)
            archive_after_days: Rows older than this many days are moved
            delete_after_days: Archived rows older than this many days are purged
            is_enabled: Whether the table takes part in sweeps
            id: Catalog row id, if loaded from the catalog
            created_at: Catalog creation timestamp
            updated_at: Catalog update timestamp

        Raises:
            ValueError: If a retention window is negative
        """
        if archive_after_days < 0:
            raise ValueError("archive_after_days must be >= 0")
        if delete_after_days is not None and delete_after_days < 0:
            raise ValueError("delete_after_days must be >= 0")

        self.table_name = table_name
        self.archive_after_days = archive_after_days
        self.delete_after_days = delete_after_days
        self.is_enabled = is_enabled
        self.id = id
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ArchiveConfig":
        """Build a config from an archive_config catalog row."""
        return cls(
            table_name=record["table_name"],
            archive_after_days=record["archive_after_days"],
            delete_after_days=record["delete_after_days"],
            is_enabled=record["is_enabled"],
            id=record.get("id"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "table_name": self.table_name,
            "archive_after_days": self.archive_after_days,
            "delete_after_days": self.delete_after_days,
            "is_enabled": self.is_enabled,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"ArchiveConfig(table_name={self.table_name!r}, "
            f"archive_after_days={self.archive_after_days}, "
            f"delete_after_days={self.delete_after_days}, is_enabled={self.is_enabled})"
        )


class ColumnInfo:
    """One column of a source table, as reported by the catalog."""

    def __init__(
        self,
        column_name: str,
        data_type: str,
        is_nullable: bool = True,
        is_primary_key: bool = False,
        default_value: Optional[str] = None,
        max_length: Optional[int] = None,
        is_unsigned: bool = False,
    ) -> None:
        self.column_name = column_name
        self.data_type = data_type
        self.is_nullable = is_nullable
        self.is_primary_key = is_primary_key
        self.default_value = default_value
        self.max_length = max_length
        self.is_unsigned = is_unsigned

    @property
    def normalized_type(self) -> str:
        return self.data_type.strip().lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_name": self.column_name,
            "data_type": self.data_type,
            "is_nullable": self.is_nullable,
            "is_primary_key": self.is_primary_key,
            "default_value": self.default_value,
            "max_length": self.max_length,
            "is_unsigned": self.is_unsigned,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnInfo):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"ColumnInfo({self.column_name!r}, {self.data_type!r})"


class TableSchema:
    """A table name plus its columns in declaration order."""

    def __init__(self, table_name: str, columns: Optional[list[ColumnInfo]] = None) -> None:
        self.table_name = table_name
        self.columns: list[ColumnInfo] = list(columns or [])

    @property
    def column_names(self) -> list[str]:
        return [c.column_name for c in self.columns]

    @property
    def primary_key_columns(self) -> list[ColumnInfo]:
        return [c for c in self.columns if c.is_primary_key]

    def find_column(self, name: str) -> Optional[ColumnInfo]:
        """Find a column by name, ignoring case."""
        wanted = name.lower()
        for column in self.columns:
            if column.column_name.lower() == wanted:
                return column
        return None

    def has_column(self, name: str) -> bool:
        return self.find_column(name) is not None

    def index_of(self, name: str) -> int:
        """Position of a column in the row buffer.

        Raises:
            KeyError: If the column is not part of the schema
        """
        wanted = name.lower()
        for position, column in enumerate(self.columns):
            if column.column_name.lower() == wanted:
                return position
        raise KeyError(name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.table_name,
            "columns": [c.to_dict() for c in self.columns],
        }


class ArchiveLog:
    """Outcome of one archival attempt; one catalog row per attempt."""

    def __init__(
        self,
        table_name: str,
        status: ArchiveStatus = ArchiveStatus.STARTED,
        records_archived: int = 0,
        records_deleted: int = 0,
        archive_date: Optional[datetime] = None,
        error_message: Optional[str] = None,
        id: Optional[int] = None,
    ) -> None:
        self.table_name = table_name
        self.status = status
        self.records_archived = records_archived
        self.records_deleted = records_deleted
        self.archive_date = archive_date or utc_now()
        self.error_message = error_message
        self.id = id

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ArchiveLog":
        """Build a log entry from an archive_log catalog row."""
        return cls(
            id=record["id"],
            table_name=record["table_name"],
            status=ArchiveStatus(record["status"]),
            records_archived=record["records_archived"],
            records_deleted=record["records_deleted"] or 0,
            archive_date=record["archive_date"],
            error_message=record["error_message"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "table_name": self.table_name,
            "status": self.status.value,
            "records_archived": self.records_archived,
            "records_deleted": self.records_deleted,
            "archive_date": self.archive_date.isoformat(),
            "error_message": self.error_message,
        }

    def __repr__(self) -> str:
        return (
            f"ArchiveLog(table_name={self.table_name!r}, status={self.status.value}, "
            f"records_archived={self.records_archived}, records_deleted={self.records_deleted})"
        )
