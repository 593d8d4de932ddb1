"""Retention purge of archived rows."""

from datetime import datetime
from typing import Optional

from structlog import BoundLogger

from archival.database import ArchiveDatabase, affected_rows
from archival.models import TIMESTAMP_COLUMN
from utils import safe_identifier
from utils.logging import get_logger


class RetentionPurger:
    """Deletes archive rows past their delete-after window in one statement."""

    def __init__(
        self,
        archive_db: ArchiveDatabase,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        self.archive_db = archive_db
        self.logger = logger or get_logger("retention_purger")

    async def purge_older_than(
        self,
        table_name: str,
        cutoff: datetime,
        timestamp_column: str = TIMESTAMP_COLUMN,
    ) -> int:
        """Delete archived rows strictly older than the cutoff.

        Args:
            table_name: Archive table name
            cutoff: Rows with a timestamp strictly before this are deleted
            timestamp_column: Timestamp column of the archive table

        Returns:
            Number of rows deleted

        Raises:
            DatabaseError: If the delete fails
        """
        table = f"{safe_identifier(self.archive_db.schema_name)}.{safe_identifier(table_name)}"
        query = f"DELETE FROM {table} WHERE {safe_identifier(timestamp_column)} < $1"

        status = await self.archive_db.execute(query, cutoff)
        deleted = affected_rows(status)

        self.logger.info(
            "Archived records purged",
            table=table_name,
            cutoff=cutoff.isoformat(),
            count=deleted,
        )
        return deleted
