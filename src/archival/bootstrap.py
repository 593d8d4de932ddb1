"""Wiring of stores, catalogs and the archival engine from settings."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional, Union

from structlog import BoundLogger

from archival.batch_mover import BatchMover
from archival.config import ArchivalSettings
from archival.config_provider import DatabaseConfigProvider, StaticConfigProvider
from archival.database import ArchiveDatabase
from archival.engine import ArchivalEngine
from archival.metrics import ArchivalMetrics
from archival.retention_purger import RetentionPurger
from archival.run_log import RunLog
from archival.schema_translator import SchemaTranslator
from archival.source_database import SourceDatabase
from utils.logging import get_logger


class ArchivalServices:
    """Connected stores plus the engine built on top of them."""

    def __init__(
        self,
        source_db: SourceDatabase,
        archive_db: ArchiveDatabase,
        config_provider: Union[DatabaseConfigProvider, StaticConfigProvider],
        run_log: RunLog,
        engine: ArchivalEngine,
    ) -> None:
        self.source_db = source_db
        self.archive_db = archive_db
        self.config_provider = config_provider
        self.run_log = run_log
        self.engine = engine


def build_config_provider(
    settings: ArchivalSettings,
    archive_db: ArchiveDatabase,
) -> Union[DatabaseConfigProvider, StaticConfigProvider]:
    """Static configs when the settings file lists tables, the catalog otherwise."""
    if settings.tables is not None:
        return StaticConfigProvider.from_settings(settings)
    return DatabaseConfigProvider(archive_db)


@asynccontextmanager
async def open_services(
    settings: ArchivalSettings,
    metrics: Optional[ArchivalMetrics] = None,
    logger: Optional[BoundLogger] = None,
) -> AsyncGenerator[ArchivalServices, None]:
    """Connect both stores, make sure the catalogs exist, and build the engine.

    Connections are closed when the context exits.

    Raises:
        DatabaseError: If a store cannot be reached or the catalogs cannot be created
    """
    logger = logger or get_logger("bootstrap")
    archive_db = ArchiveDatabase(settings.archive)
    source_db = SourceDatabase(settings.source)

    await archive_db.connect()
    try:
        await source_db.connect()
        try:
            await archive_db.ensure_schema()
            config_provider = build_config_provider(settings, archive_db)
            run_log = RunLog(archive_db)
            await config_provider.initialize()
            await run_log.initialize()

            engine = ArchivalEngine(
                config_provider=config_provider,
                translator=SchemaTranslator(source_db, archive_db),
                mover=BatchMover(source_db, archive_db),
                purger=RetentionPurger(archive_db),
                run_log=run_log,
                metrics=metrics,
            )
            logger.debug(
                "Archival services ready",
                source=settings.source.name,
                archive=settings.archive.name,
                archive_schema=settings.archive.schema_name,
                config_source=type(config_provider).__name__,
            )
            yield ArchivalServices(source_db, archive_db, config_provider, run_log, engine)
        finally:
            await source_db.disconnect()
    finally:
        await archive_db.disconnect()
