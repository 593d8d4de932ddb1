"""Append-only run log of archival attempts, stored in the archive store."""

from typing import Optional

from structlog import BoundLogger

from archival.database import ArchiveDatabase
from archival.models import ArchiveLog
from utils import safe_identifier
from utils.logging import get_logger

DEFAULT_LOG_LIMIT = 100


class RunLog:
    """Records one archive_log row per archival attempt.

    Appends are best-effort: a failed write is reported on the operational
    log stream and never propagated to the archival attempt.
    """

    TABLE_NAME = "archive_log"

    def __init__(
        self,
        archive_db: ArchiveDatabase,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        self.archive_db = archive_db
        self.logger = logger or get_logger("run_log")

    @property
    def _table(self) -> str:
        return f"{safe_identifier(self.archive_db.schema_name)}.{safe_identifier(self.TABLE_NAME)}"

    async def initialize(self) -> None:
        """Create the archive_log table and its lookup index if absent."""
        await self.archive_db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id BIGSERIAL PRIMARY KEY,
                table_name VARCHAR(255) NOT NULL,
                records_archived INTEGER NOT NULL DEFAULT 0,
                records_deleted INTEGER NOT NULL DEFAULT 0,
                archive_date TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                status VARCHAR(50) NOT NULL,
                error_message TEXT
            )
            """
        )
        await self.archive_db.execute(
            f"""
            CREATE INDEX IF NOT EXISTS idx_archive_log_table_date
            ON {self._table} (table_name, archive_date DESC)
            """
        )
        self.logger.debug("Run log catalog ready", table=self.TABLE_NAME)

    async def append(self, log: ArchiveLog) -> None:
        """Persist one log entry and set its id.

        Args:
            log: Entry to write; ``log.id`` is set on success
        """
        try:
            log.id = await self.archive_db.fetchval(
                f"""
                INSERT INTO {self._table} (
                    table_name, records_archived, records_deleted,
                    archive_date, status, error_message
                ) VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING id
                """,
                log.table_name,
                log.records_archived,
                log.records_deleted,
                log.archive_date,
                log.status.value,
                log.error_message,
            )
        except Exception as e:
            self.logger.error(
                "Failed to write archive log entry",
                table=log.table_name,
                status=log.status.value,
                error=str(e),
            )

    async def get_logs(
        self,
        table_name: Optional[str] = None,
        limit: int = DEFAULT_LOG_LIMIT,
    ) -> list[ArchiveLog]:
        """Most recent log entries first, optionally for one table.

        Raises:
            DatabaseError: If the query fails
        """
        columns = "id, table_name, records_archived, records_deleted, archive_date, status, error_message"
        if table_name is None:
            records = await self.archive_db.fetch(
                f"SELECT {columns} FROM {self._table} ORDER BY archive_date DESC, id DESC LIMIT $1",
                limit,
            )
        else:
            records = await self.archive_db.fetch(
                f"SELECT {columns} FROM {self._table} WHERE table_name = $1 "
                f"ORDER BY archive_date DESC, id DESC LIMIT $2",
                table_name,
                limit,
            )
        return [ArchiveLog.from_record(r) for r in records]
