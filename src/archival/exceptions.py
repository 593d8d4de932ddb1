"""Custom exception hierarchy for the archival engine."""

from typing import Any, Optional


class ArchivalError(Exception):
    """Base exception for all archival errors."""

    def __init__(
        self,
        message: str,
        *,
        correlation_id: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Initialize archival error.

        Args:
            message: Error message
            correlation_id: Optional correlation ID for tracing
            context: Optional context dictionary with additional details
        """
        super().__init__(message)
        self.message = message
        self.correlation_id = correlation_id
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message."""
        parts = [self.message]
        if self.correlation_id:
            parts.append(f"[correlation_id={self.correlation_id}]")
        if self.context:
            parts.append(f"[context={self.context}]")
        return " ".join(parts)


class ConfigurationError(ArchivalError):
    """Missing, disabled or unusable archival configuration."""

    pass


class DatabaseError(ArchivalError):
    """Database connectivity or query errors."""

    pass


class SchemaError(ArchivalError):
    """Source table missing, unreadable catalog, or unusable structure."""

    pass


class TransactionError(ArchivalError):
    """A page transaction failed and was rolled back."""

    def __init__(
        self,
        message: str,
        *,
        records_moved: int = 0,
        correlation_id: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Initialize transaction error.

        Args:
            message: Error message
            records_moved: Rows moved by pages committed before the failure
            correlation_id: Optional correlation ID for tracing
            context: Optional context dictionary with additional details
        """
        super().__init__(message, correlation_id=correlation_id, context=context)
        self.records_moved = records_moved


class ArchivalInterrupted(ArchivalError):
    """A move stopped at a page boundary because shutdown was requested."""

    def __init__(
        self,
        message: str = "Archival interrupted by shutdown",
        *,
        records_moved: int = 0,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, context=context)
        self.records_moved = records_moved


class SweepError(ArchivalError):
    """Failure outside any single table's handling."""

    pass
