"""Sources of per-table archival configuration."""

from typing import Optional, Protocol

from structlog import BoundLogger

from archival.config import ArchivalSettings
from archival.database import ArchiveDatabase
from archival.models import ArchiveConfig
from utils import safe_identifier
from utils.logging import get_logger


class ConfigProvider(Protocol):
    """Read-only access to archive configs, keyed by table name."""

    async def get_config(self, table_name: str) -> Optional[ArchiveConfig]: ...

    async def get_all_configs(self) -> list[ArchiveConfig]: ...


class DatabaseConfigProvider:
    """Reads configs from the archive_config catalog table in the archive store."""

    TABLE_NAME = "archive_config"

    def __init__(
        self,
        archive_db: ArchiveDatabase,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        self.archive_db = archive_db
        self.logger = logger or get_logger("config_provider")

    @property
    def _table(self) -> str:
        return f"{safe_identifier(self.archive_db.schema_name)}.{safe_identifier(self.TABLE_NAME)}"

    async def initialize(self) -> None:
        """Create the archive_config catalog table if it doesn't exist."""
        await self.archive_db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id SERIAL PRIMARY KEY,
                table_name VARCHAR(255) NOT NULL UNIQUE,
                archive_after_days INTEGER NOT NULL CHECK (archive_after_days >= 0),
                delete_after_days INTEGER CHECK (delete_after_days >= 0),
                is_enabled BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        self.logger.debug("Config catalog ready", table=self.TABLE_NAME)

    async def get_config(self, table_name: str) -> Optional[ArchiveConfig]:
        """Get the config for one table.

        Raises:
            DatabaseError: If the catalog query fails
        """
        record = await self.archive_db.fetchrow(
            f"""
            SELECT id, table_name, archive_after_days, delete_after_days,
                   is_enabled, created_at, updated_at
            FROM {self._table}
            WHERE table_name = $1
            """,
            table_name,
        )
        return ArchiveConfig.from_record(record) if record else None

    async def get_all_configs(self) -> list[ArchiveConfig]:
        """Get every config, ordered by table name.

        Raises:
            DatabaseError: If the catalog query fails
        """
        records = await self.archive_db.fetch(
            f"""
            SELECT id, table_name, archive_after_days, delete_after_days,
                   is_enabled, created_at, updated_at
            FROM {self._table}
            ORDER BY table_name
            """
        )
        return [ArchiveConfig.from_record(r) for r in records]


class StaticConfigProvider:
    """Serves configs declared in the settings file."""

    def __init__(self, configs: list[ArchiveConfig]) -> None:
        self._configs = {c.table_name: c for c in configs}

    @classmethod
    def from_settings(cls, settings: ArchivalSettings) -> "StaticConfigProvider":
        return cls(
            [
                ArchiveConfig(
                    table_name=t.table_name,
                    archive_after_days=t.archive_after_days,
                    delete_after_days=t.delete_after_days,
                    is_enabled=t.is_enabled,
                )
                for t in settings.tables or []
            ]
        )

    async def initialize(self) -> None:
        pass

    async def get_config(self, table_name: str) -> Optional[ArchiveConfig]:
        return self._configs.get(table_name)

    async def get_all_configs(self) -> list[ArchiveConfig]:
        return [self._configs[name] for name in sorted(self._configs)]
