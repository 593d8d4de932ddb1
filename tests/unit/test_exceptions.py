"""Unit tests for exception classes."""

from archival.exceptions import (
    ArchivalError,
    ArchivalInterrupted,
    ConfigurationError,
    DatabaseError,
    SchemaError,
    SweepError,
    TransactionError,
)


def test_archival_error_basic() -> None:
    """Test basic ArchivalError."""
    error = ArchivalError("Test error")
    assert str(error) == "Test error"
    assert error.message == "Test error"
    assert error.correlation_id is None
    assert error.context == {}


def test_archival_error_with_correlation_id() -> None:
    error = ArchivalError("Test error", correlation_id="abc123")
    assert "abc123" in str(error)
    assert error.message == "Test error"


def test_archival_error_with_context() -> None:
    error = ArchivalError("Test error", context={"table": "orders"})
    assert error.context == {"table": "orders"}
    assert "orders" in str(error)


def test_error_hierarchy() -> None:
    """Test exception hierarchy."""
    for cls in (
        ConfigurationError,
        DatabaseError,
        SchemaError,
        TransactionError,
        ArchivalInterrupted,
        SweepError,
    ):
        assert issubclass(cls, ArchivalError)


def test_transaction_error_carries_committed_count() -> None:
    error = TransactionError("Page 3 failed", records_moved=2000, context={"page": 3})
    assert error.records_moved == 2000
    assert error.message == "Page 3 failed"


def test_interrupted_default_message() -> None:
    error = ArchivalInterrupted(records_moved=5)
    assert error.message == "Archival interrupted by shutdown"
    assert error.records_moved == 5
