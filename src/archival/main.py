"""Main entry point for the table-archival CLI."""

import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Optional

import click

from archival.bootstrap import open_services
from archival.config import ArchivalSettings, load_config
from archival.exceptions import ArchivalError, ConfigurationError
from archival.metrics import ArchivalMetrics
from archival.models import ArchiveLog, ArchiveStatus
from archival.run_log import DEFAULT_LOG_LIMIT
from archival.scheduler import ArchivalScheduler
from utils.logging import configure_logging
from utils.output import (
    print_error,
    print_log_table,
    print_success,
    print_sweep_summary,
)


class CliContext:
    """Settings and logger shared by all commands."""

    def __init__(self, settings: ArchivalSettings, logger) -> None:
        self.settings = settings
        self.logger = logger


async def _initialize(settings: ArchivalSettings) -> None:
    async with open_services(settings):
        pass


async def _archive(settings: ArchivalSettings, table: Optional[str]) -> list[ArchiveLog]:
    async with open_services(settings) as services:
        if table:
            return [await services.engine.archive_one_table(table)]
        return await services.engine.archive_all_configured_tables()


async def _logs(settings: ArchivalSettings, table: Optional[str], limit: int) -> list[ArchiveLog]:
    async with open_services(settings) as services:
        return await services.engine.get_logs(table, limit)


async def _run_scheduler(settings: ArchivalSettings, logger) -> None:
    metrics: Optional[ArchivalMetrics] = None
    monitoring = settings.monitoring
    if monitoring is not None and monitoring.metrics_enabled:
        metrics = ArchivalMetrics()
        metrics.start_metrics_server(monitoring.metrics_port)

    async with open_services(settings, metrics=metrics) as services:
        scheduler = ArchivalScheduler(
            services.engine,
            interval_seconds=settings.scheduler.interval_seconds,
            retry_delay_seconds=settings.scheduler.retry_delay_seconds,
            run_on_start=settings.scheduler.run_on_start,
            metrics=metrics,
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, scheduler.stop)
        try:
            await scheduler.run()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

    logger.info("Archival service shut down")


@click.group()
@click.option(
    "--config",
    "-c",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default="console",
    type=click.Choice(["console", "json"], case_sensitive=False),
    help="Log format: 'console' for human-readable output, 'json' for structured logs (default: console)",
)
@click.pass_context
def cli(ctx: click.Context, config: Path, log_level: str, log_format: str) -> None:
    """Move aging MySQL rows into a PostgreSQL archive and purge them on retention."""
    logger = configure_logging(log_level=log_level, log_format=log_format.lower())
    logger = logger.bind(component="main")

    try:
        settings = load_config(config)
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e), correlation_id=e.correlation_id)
        print_error(e.message)
        sys.exit(1)

    ctx.obj = CliContext(settings, logger)


@cli.command()
@click.pass_obj
def init(obj: CliContext) -> None:
    """Create the archive schema and the archive_config/archive_log catalogs."""
    try:
        asyncio.run(_initialize(obj.settings))
    except ArchivalError as e:
        obj.logger.error("Initialization failed", error=str(e))
        print_error(f"Initialization failed: {e.message}")
        sys.exit(1)

    print_success(f"Archive catalogs ready in schema '{obj.settings.archive.schema_name}'")


@cli.command()
@click.pass_obj
def run(obj: CliContext) -> None:
    """Run the scheduler until SIGINT or SIGTERM."""
    try:
        asyncio.run(_run_scheduler(obj.settings, obj.logger))
    except ArchivalError as e:
        obj.logger.error("Archival service failed", error=str(e))
        print_error(e.message)
        sys.exit(1)


@cli.command()
@click.option("--table", "-t", default=None, help="Archive only this table")
@click.pass_obj
def archive(obj: CliContext, table: Optional[str]) -> None:
    """Archive one table, or sweep every enabled table once."""
    try:
        results = asyncio.run(_archive(obj.settings, table))
    except ArchivalError as e:
        obj.logger.error("Archival run failed", error=str(e))
        print_error(e.message)
        sys.exit(1)

    entries = [r.to_dict() for r in results]
    print_log_table(entries)
    print_sweep_summary(entries)
    if any(r.status is ArchiveStatus.FAILED for r in results):
        sys.exit(1)


@cli.command()
@click.option("--table", "-t", default=None, help="Show entries for this table only")
@click.option(
    "--limit",
    default=DEFAULT_LOG_LIMIT,
    show_default=True,
    type=click.IntRange(min=1),
    help="Maximum number of entries",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print entries as JSON")
@click.pass_obj
def logs(obj: CliContext, table: Optional[str], limit: int, as_json: bool) -> None:
    """Show the most recent archive log entries, newest first."""
    try:
        results = asyncio.run(_logs(obj.settings, table, limit))
    except ArchivalError as e:
        obj.logger.error("Reading archive log failed", error=str(e))
        print_error(e.message)
        sys.exit(1)

    entries = [r.to_dict() for r in results]
    if as_json:
        click.echo(json.dumps(entries, indent=2))
    else:
        print_log_table(entries)


if __name__ == "__main__":
    cli()
