"""Unit tests for configuration module."""

import os
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from archival.config import (
    ArchivalSettings,
    ArchiveDatabaseConfig,
    SchedulerConfig,
    SourceDatabaseConfig,
    TableArchiveConfig,
    load_config,
)
from archival.exceptions import ConfigurationError


def _settings_dict(**overrides) -> dict:
    data = {
        "version": "1.0",
        "source": {
            "name": "shop",
            "host": "localhost",
            "user": "archiver",
            "password_env": "TEST_SOURCE_PASSWORD",
        },
        "archive": {
            "name": "shop_archive",
            "host": "localhost",
            "user": "archiver",
            "password_env": "TEST_ARCHIVE_PASSWORD",
        },
    }
    data.update(overrides)
    return data


def test_source_database_defaults() -> None:
    config = SourceDatabaseConfig(name="shop", host="db", user="u", password_env="X")
    assert config.port == 3306
    assert config.pool_size == 5


def test_archive_database_schema_alias() -> None:
    """The archive schema is written as `schema` in YAML."""
    config = ArchiveDatabaseConfig.model_validate(
        {"name": "a", "host": "db", "user": "u", "password_env": "X", "schema": "archive"}
    )
    assert config.port == 5432
    assert config.schema_name == "archive"

    default = ArchiveDatabaseConfig(name="a", host="db", user="u", password_env="X")
    assert default.schema_name == "public"


def test_password_sources_are_exclusive() -> None:
    with pytest.raises(ValidationError, match="Cannot specify both"):
        SourceDatabaseConfig(name="s", host="h", user="u", password_env="X", password="p")

    with pytest.raises(ValidationError, match="Either 'password_env' or 'password'"):
        SourceDatabaseConfig(name="s", host="h", user="u")


def test_get_password_from_env() -> None:
    os.environ["TEST_SOURCE_PASSWORD"] = "secret"
    config = SourceDatabaseConfig(
        name="s", host="h", user="u", password_env="TEST_SOURCE_PASSWORD"
    )
    assert config.get_password() == "secret"


def test_get_password_missing_env() -> None:
    config = SourceDatabaseConfig(name="s", host="h", user="u", password_env="NONEXISTENT_ENV")
    with pytest.raises(ValueError, match="NONEXISTENT_ENV not set"):
        config.get_password()


def test_get_password_from_config_warns() -> None:
    config = SourceDatabaseConfig(name="s", host="h", user="u", password="dev")
    with pytest.warns(UserWarning, match="not recommended for production"):
        assert config.get_password() == "dev"


def test_scheduler_defaults() -> None:
    config = SchedulerConfig()
    assert config.interval_seconds == 86400
    assert config.retry_delay_seconds == 300
    assert config.run_on_start is True


def test_scheduler_backoff_must_be_shorter() -> None:
    with pytest.raises(ValidationError, match="shorter than interval_hours"):
        SchedulerConfig(interval_hours=0.05, retry_delay_minutes=5)


def test_table_config_validation() -> None:
    config = TableArchiveConfig(table_name="orders", archive_after_days=30)
    assert config.delete_after_days is None
    assert config.is_enabled is True

    with pytest.raises(ValidationError):
        TableArchiveConfig(table_name="orders", archive_after_days=-1)

    with pytest.raises(ValidationError, match="Invalid table name"):
        TableArchiveConfig(table_name="orders; DROP TABLE x", archive_after_days=1)


def test_settings_version_validation() -> None:
    with pytest.raises(ValidationError, match="Unsupported configuration version"):
        ArchivalSettings.model_validate(_settings_dict(version="2.0"))


def test_settings_rejects_duplicate_tables() -> None:
    data = _settings_dict(
        tables=[
            {"table_name": "orders", "archive_after_days": 30},
            {"table_name": "orders", "archive_after_days": 60},
        ]
    )
    with pytest.raises(ValidationError, match="Duplicate table configs: orders"):
        ArchivalSettings.model_validate(data)


def test_settings_tables_optional() -> None:
    settings = ArchivalSettings.model_validate(_settings_dict())
    assert settings.tables is None
    assert settings.monitoring is None
    assert settings.scheduler.interval_hours == 24


def test_load_config_from_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        yaml.safe_dump(
            _settings_dict(
                tables=[{"table_name": "orders", "archive_after_days": 30, "delete_after_days": 365}]
            )
        )
    )

    settings = load_config(config_file)
    assert settings.source.name == "shop"
    assert settings.tables[0].delete_after_days == 365


def test_load_config_substitutes_env_vars(tmp_path: Path) -> None:
    os.environ["TEST_ARCHIVE_HOST"] = "pg.internal"
    os.environ.pop("TEST_SOURCE_HOST", None)
    data = _settings_dict()
    data["archive"]["host"] = "${TEST_ARCHIVE_HOST}"
    data["source"]["host"] = "${TEST_SOURCE_HOST:-mysql.local}"
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump(data))

    settings = load_config(config_file)
    assert settings.archive.host == "pg.internal"
    assert settings.source.host == "mysql.local"


def test_load_config_missing_env_var(tmp_path: Path) -> None:
    os.environ.pop("TEST_UNSET_HOST", None)
    data = _settings_dict()
    data["source"]["host"] = "${TEST_UNSET_HOST}"
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump(data))

    with pytest.raises(ConfigurationError, match="TEST_UNSET_HOST not set"):
        load_config(config_file)


def test_load_config_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Configuration file not found"):
        load_config(tmp_path / "missing.yaml")


def test_load_config_invalid_yaml(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("version: [unclosed")
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_config(config_file)


def test_load_config_empty_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")
    with pytest.raises(ConfigurationError, match="Configuration file is empty"):
        load_config(config_file)
