"""Prometheus metrics for monitoring archival runs and sweeps."""

from typing import Optional

import structlog
from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from archival.models import ArchiveLog
from utils.logging import get_logger


class ArchivalMetrics:
    """Prometheus metrics for the archival engine and scheduler."""

    def __init__(
        self,
        logger: Optional[structlog.BoundLogger] = None,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        """Initialize metrics.

        Args:
            logger: Optional logger instance
            registry: Optional Prometheus registry (defaults to global REGISTRY)
        """
        self.logger = logger or get_logger("metrics")
        self.registry = registry or REGISTRY

        self.records_archived_total = Counter(
            "archival_records_archived_total",
            "Total number of records moved to the archive store",
            ["table"],
            registry=self.registry,
        )

        self.records_purged_total = Counter(
            "archival_records_purged_total",
            "Total number of archived records removed by retention purge",
            ["table"],
            registry=self.registry,
        )

        self.runs_total = Counter(
            "archival_runs_total",
            "Total number of per-table archival attempts",
            ["status"],  # Skipped, Completed, Failed
            registry=self.registry,
        )

        self.table_duration_seconds = Histogram(
            "archival_table_duration_seconds",
            "Duration of one table's archival attempt in seconds",
            ["table"],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0],
            registry=self.registry,
        )

        self.sweeps_total = Counter(
            "archival_sweeps_total",
            "Total number of scheduler sweeps",
            ["status"],  # success, failure
            registry=self.registry,
        )

        self.last_sweep_timestamp = Gauge(
            "archival_last_sweep_timestamp",
            "Unix timestamp of the last completed sweep",
            registry=self.registry,
        )

    def record_table_outcome(self, log: ArchiveLog, duration_seconds: float) -> None:
        """Record the terminal outcome of one table's attempt.

        Args:
            log: Terminal log entry of the attempt
            duration_seconds: Wall time spent on the attempt
        """
        self.runs_total.labels(status=log.status.value).inc()
        self.table_duration_seconds.labels(table=log.table_name).observe(duration_seconds)
        if log.records_archived:
            self.records_archived_total.labels(table=log.table_name).inc(log.records_archived)
        if log.records_deleted:
            self.records_purged_total.labels(table=log.table_name).inc(log.records_deleted)

    def record_sweep(self, success: bool, timestamp: Optional[float] = None) -> None:
        """Record a sweep result; successful sweeps also stamp the last-sweep gauge."""
        self.sweeps_total.labels(status="success" if success else "failure").inc()
        if success:
            if timestamp is None:
                self.last_sweep_timestamp.set_to_current_time()
            else:
                self.last_sweep_timestamp.set(timestamp)

    def get_metrics(self) -> bytes:
        """Get Prometheus metrics in text format."""
        return generate_latest(self.registry)

    def start_metrics_server(self, port: int = 8000) -> None:
        """Start HTTP server for Prometheus metrics.

        Args:
            port: Port to listen on (default: 8000)
        """
        try:
            start_http_server(port, registry=self.registry)
            self.logger.info(
                "Prometheus metrics server started",
                port=port,
                endpoint=f"http://localhost:{port}/metrics",
            )
        except Exception as e:
            self.logger.error(
                "Failed to start metrics server",
                port=port,
                error=str(e),
            )
            raise
