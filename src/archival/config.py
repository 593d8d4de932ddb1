"""Configuration management using YAML and Pydantic."""

import os
import re
import warnings
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from archival.exceptions import ConfigurationError


def _substitute_env_vars(value: str) -> str:
    """Substitute environment variables in string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with environment variables substituted
    """
    pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_value = os.getenv(var_name)
        if env_value is not None:
            return env_value
        if default is not None:
            return default
        raise ValueError(f"Environment variable {var_name} not set and no default provided")

    return re.sub(pattern, replacer, value)


def _substitute_env_in_dict(data: Any) -> Any:
    """Recursively substitute environment variables in a parsed YAML document."""
    if isinstance(data, dict):
        return {key: _substitute_env_in_dict(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_in_dict(item) for item in data]
    elif isinstance(data, str):
        return _substitute_env_vars(data)
    return data


class _DatabaseConnectionConfig(BaseModel):
    """Connection settings shared by the source and archive stores."""

    name: str = Field(description="Database name")
    host: str = Field(description="Database host")
    user: str = Field(description="Database user")
    password_env: Optional[str] = Field(
        default=None,
        description="Name of the environment variable holding the password",
    )
    password: Optional[str] = Field(
        default=None,
        description="Inline password, for local development only",
    )
    pool_size: int = Field(default=5, description="Connection pool size", gt=0, le=50)

    @model_validator(mode="after")
    def validate_password_source(self) -> "_DatabaseConnectionConfig":
        """Exactly one of password_env and password must be set."""
        if self.password_env and self.password:
            raise ValueError(
                f"Cannot specify both 'password_env' and 'password' for database '{self.name}'"
            )
        if not (self.password_env or self.password):
            raise ValueError(
                f"Either 'password_env' or 'password' is required for database '{self.name}'"
            )
        return self

    def get_password(self) -> str:
        """Resolve the password, preferring the environment.

        Raises:
            ValueError: If password_env names a variable that is unset or empty
        """
        if not self.password_env:
            warnings.warn(
                f"Database '{self.name}' uses an inline password; "
                "this is not recommended for production, set password_env instead",
                UserWarning,
                stacklevel=2,
            )
            return self.password or ""

        password = os.getenv(self.password_env)
        if not password:
            raise ValueError(f"Environment variable {self.password_env} not set")
        return password


class SourceDatabaseConfig(_DatabaseConnectionConfig):
    """Source (MySQL) database configuration."""

    port: int = Field(default=3306, description="Database port", gt=0, lt=65536)


class ArchiveDatabaseConfig(_DatabaseConnectionConfig):
    """Archive (PostgreSQL) database configuration."""

    model_config = {"populate_by_name": True}

    port: int = Field(default=5432, description="Database port", gt=0, lt=65536)
    schema_name: str = Field(
        default="public",
        alias="schema",
        description="Schema holding archive tables and the archival catalog",
    )


class SchedulerConfig(BaseModel):
    """Background sweep scheduling."""

    interval_hours: float = Field(default=24.0, description="Hours between sweeps", gt=0)
    retry_delay_minutes: float = Field(
        default=5.0,
        description="Minutes to wait before retrying after a failed sweep",
        gt=0,
    )
    run_on_start: bool = Field(
        default=True,
        description="Run the first sweep immediately instead of after one interval",
    )

    @property
    def interval_seconds(self) -> float:
        return self.interval_hours * 3600

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_minutes * 60

    @model_validator(mode="after")
    def validate_backoff_shorter_than_interval(self) -> "SchedulerConfig":
        """The failure backoff must be shorter than the regular interval."""
        if self.retry_delay_seconds >= self.interval_seconds:
            raise ValueError("retry_delay_minutes must be shorter than interval_hours")
        return self


class MonitoringConfig(BaseModel):
    """Monitoring and metrics configuration."""

    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics",
    )
    metrics_port: int = Field(
        default=8000,
        description="Port for Prometheus metrics endpoint",
        gt=0,
        lt=65536,
    )


class TableArchiveConfig(BaseModel):
    """Static per-table archival settings, used instead of the archive_config catalog."""

    table_name: str = Field(description="Source table name")
    archive_after_days: int = Field(description="Move rows older than this many days", ge=0)
    delete_after_days: Optional[int] = Field(
        default=None,
        description="Purge archived rows older than this many days (optional)",
        ge=0,
    )
    is_enabled: bool = Field(default=True, description="Whether the table is archived")

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Reject names that cannot be safely quoted."""
        if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", v):
            raise ValueError(f"Invalid table name: {v!r}")
        return v


class ArchivalSettings(BaseModel):
    """Root configuration model."""

    version: str = Field(description="Configuration version")
    source: SourceDatabaseConfig = Field(description="Source database (MySQL)")
    archive: ArchiveDatabaseConfig = Field(description="Archive database (PostgreSQL)")
    scheduler: SchedulerConfig = Field(
        default_factory=SchedulerConfig, description="Scheduler settings"
    )
    monitoring: Optional[MonitoringConfig] = Field(
        default=None,
        description="Monitoring and metrics configuration",
    )
    tables: Optional[list[TableArchiveConfig]] = Field(
        default=None,
        description="Static table configs; when omitted the archive_config catalog is used",
    )

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate configuration version."""
        if v != "1.0":
            raise ValueError(f"Unsupported configuration version: {v}")
        return v

    @model_validator(mode="after")
    def validate_unique_tables(self) -> "ArchivalSettings":
        """A table name identifies at most one config."""
        if self.tables:
            names = [t.table_name for t in self.tables]
            duplicates = sorted({n for n in names if names.count(n) > 1})
            if duplicates:
                raise ValueError(f"Duplicate table configs: {', '.join(duplicates)}")
        return self


def load_config(config_path: Path) -> ArchivalSettings:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated configuration object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)

        if not raw_config:
            raise ValueError("Configuration file is empty")

        config_data = _substitute_env_in_dict(raw_config)
        return ArchivalSettings.model_validate(config_data)

    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            context={"path": str(config_path)},
        ) from None
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in configuration file: {e}",
            context={"path": str(config_path)},
        ) from e
    except Exception as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            context={"path": str(config_path)},
        ) from e
