"""Archival engine: per-table state machine and configured-table sweep."""

import asyncio
import time
from datetime import timedelta
from typing import NamedTuple, Optional

from structlog import BoundLogger

from archival.batch_mover import BatchMover
from archival.config_provider import ConfigProvider
from archival.exceptions import ArchivalError, SweepError
from archival.metrics import ArchivalMetrics
from archival.models import (
    TIMESTAMP_COLUMN,
    ArchiveConfig,
    ArchiveLog,
    ArchiveStatus,
    TableSchema,
    utc_now,
)
from archival.retention_purger import RetentionPurger
from archival.run_log import DEFAULT_LOG_LIMIT, RunLog
from archival.schema_translator import SchemaTranslator
from utils.logging import get_logger

NO_CONFIG_MESSAGE = "No configuration found or disabled"
NO_COLUMNS_MESSAGE = "Table not found or no columns"
NO_TIMESTAMP_MESSAGE = f"Table does not have {TIMESTAMP_COLUMN} column"
NO_PRIMARY_KEY_MESSAGE = "Table does not have a primary key; archived rows cannot be deleted"


class Outcome(NamedTuple):
    """Terminal result of one table's archival attempt."""

    status: ArchiveStatus
    records_archived: int = 0
    records_deleted: int = 0
    error_message: Optional[str] = None


def preflight(
    config: Optional[ArchiveConfig],
    schema: Optional[TableSchema] = None,
) -> Optional[Outcome]:
    """Early-exit checks, in order, before any store is modified.

    Args:
        config: Table config, or None if none exists
        schema: Discovered schema, or None if not yet discovered

    Returns:
        A terminal outcome, or None to proceed
    """
    if config is None or not config.is_enabled:
        return Outcome(ArchiveStatus.SKIPPED, error_message=NO_CONFIG_MESSAGE)
    if schema is None:
        return None
    if not schema.columns:
        return Outcome(ArchiveStatus.FAILED, error_message=NO_COLUMNS_MESSAGE)
    if not schema.has_column(TIMESTAMP_COLUMN):
        return Outcome(ArchiveStatus.FAILED, error_message=NO_TIMESTAMP_MESSAGE)
    if not schema.primary_key_columns:
        return Outcome(ArchiveStatus.FAILED, error_message=NO_PRIMARY_KEY_MESSAGE)
    return None


def _error_text(error: BaseException) -> str:
    if isinstance(error, ArchivalError):
        return error.message
    return str(error) or type(error).__name__


def decide_outcome(
    config: Optional[ArchiveConfig],
    schema: Optional[TableSchema],
    move_result: Optional[int],
    purge_result: Optional[int],
    error: Optional[BaseException],
) -> Outcome:
    """Map everything known about an attempt onto its terminal state.

    Args:
        config: Table config, or None if none exists
        schema: Discovered schema, or None if discovery did not happen
        move_result: Rows moved, or None if the move did not finish
        purge_result: Rows purged, or None if no purge ran
        error: Error that ended the attempt, if any

    Returns:
        Terminal outcome
    """
    if error is not None:
        if move_result is not None:
            archived = move_result
        else:
            archived = getattr(error, "records_moved", 0)
        return Outcome(
            ArchiveStatus.FAILED,
            records_archived=archived,
            error_message=_error_text(error),
        )

    early_exit = preflight(config, schema)
    if early_exit is not None:
        return early_exit

    return Outcome(
        ArchiveStatus.COMPLETED,
        records_archived=move_result or 0,
        records_deleted=purge_result or 0,
    )


class ArchivalEngine:
    """Runs the archival state machine for one table or for all configured tables."""

    def __init__(
        self,
        config_provider: ConfigProvider,
        translator: SchemaTranslator,
        mover: BatchMover,
        purger: RetentionPurger,
        run_log: RunLog,
        metrics: Optional[ArchivalMetrics] = None,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        """Initialize archival engine.

        Args:
            config_provider: Source of per-table configs
            translator: Schema discovery and archive table provisioning
            mover: Source-to-archive row mover
            purger: Archive retention purger
            run_log: Sink for one log entry per attempt
            metrics: Optional metrics collector
            logger: Optional logger instance
        """
        self.config_provider = config_provider
        self.translator = translator
        self.mover = mover
        self.purger = purger
        self.run_log = run_log
        self.metrics = metrics
        self.logger = logger or get_logger("engine")

    async def archive_one_table(
        self,
        table_name: str,
        stop_event: Optional[asyncio.Event] = None,
    ) -> ArchiveLog:
        """Archive one table and record exactly one log entry.

        Per-table errors never propagate; they become a Failed entry.

        Args:
            table_name: Source table name
            stop_event: Shutdown signal honored between pages

        Returns:
            The terminal log entry
        """
        started = time.monotonic()
        now = utc_now()
        log = self.logger.bind(table=table_name)

        config: Optional[ArchiveConfig] = None
        schema: Optional[TableSchema] = None
        moved: Optional[int] = None
        purged: Optional[int] = None
        error: Optional[Exception] = None

        try:
            config = await self.config_provider.get_config(table_name)
            proceed = preflight(config) is None
            if proceed:
                schema = await self.translator.discover_schema(table_name)
                proceed = preflight(config, schema) is None

            if proceed:
                timestamp_column = schema.find_column(TIMESTAMP_COLUMN).column_name

                if not await self.translator.archive_table_exists(table_name):
                    log.info("Archive table missing, creating it")
                    await self.translator.create_archive_table(schema)

                archive_cutoff = now - timedelta(days=config.archive_after_days)
                moved = await self.mover.move_older_than(
                    table_name, schema, archive_cutoff, stop_event
                )

                if config.delete_after_days is not None:
                    purge_cutoff = now - timedelta(days=config.delete_after_days)
                    purged = await self.purger.purge_older_than(
                        table_name, purge_cutoff, timestamp_column
                    )
        except Exception as e:
            error = e

        outcome = decide_outcome(config, schema, moved, purged, error)
        entry = ArchiveLog(
            table_name=table_name,
            status=outcome.status,
            records_archived=outcome.records_archived,
            records_deleted=outcome.records_deleted,
            archive_date=now,
            error_message=outcome.error_message,
        )
        await self.run_log.append(entry)

        duration = time.monotonic() - started
        if self.metrics is not None:
            self.metrics.record_table_outcome(entry, duration)

        if outcome.status is ArchiveStatus.FAILED:
            log.error(
                "Archival failed",
                error=outcome.error_message,
                error_type=type(error).__name__ if error else None,
                records_archived=outcome.records_archived,
                duration_seconds=round(duration, 3),
            )
        elif outcome.status is ArchiveStatus.SKIPPED:
            log.info("Archival skipped", reason=outcome.error_message)
        else:
            log.info(
                "Archival completed",
                records_archived=outcome.records_archived,
                records_deleted=outcome.records_deleted,
                duration_seconds=round(duration, 3),
            )
        return entry

    async def archive_all_configured_tables(
        self,
        stop_event: Optional[asyncio.Event] = None,
    ) -> list[ArchiveLog]:
        """Archive every enabled table in turn.

        A failing table does not stop the sweep; its Failed entry is collected
        like any other.

        Args:
            stop_event: Shutdown signal honored between tables and pages

        Returns:
            One log entry per table processed

        Raises:
            SweepError: If the configured tables cannot be listed
        """
        try:
            configs = await self.config_provider.get_all_configs()
        except Exception as e:
            raise SweepError(
                f"Failed to list archive configs: {_error_text(e)}",
            ) from e

        enabled = [c for c in configs if c.is_enabled]
        self.logger.info("Sweep started", tables=len(enabled))

        results: list[ArchiveLog] = []
        for config in enabled:
            if stop_event is not None and stop_event.is_set():
                self.logger.info(
                    "Sweep stopped by shutdown",
                    processed=len(results),
                    remaining=len(enabled) - len(results),
                )
                break
            results.append(await self.archive_one_table(config.table_name, stop_event))

        self.logger.info(
            "Sweep finished",
            tables=len(results),
            failed=sum(1 for r in results if r.status is ArchiveStatus.FAILED),
            records_archived=sum(r.records_archived for r in results),
            records_deleted=sum(r.records_deleted for r in results),
        )
        return results

    async def get_logs(
        self,
        table_name: Optional[str] = None,
        limit: int = DEFAULT_LOG_LIMIT,
    ) -> list[ArchiveLog]:
        """Most recent run log entries, newest first."""
        return await self.run_log.get_logs(table_name, limit)
