"""Table Archival - Shared utilities."""

import re

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_identifier(name: str) -> str:
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(
            f"Invalid SQL identifier: {name!r}. "
            "Only letters, digits, and underscores are allowed."
        )
    return name


def safe_identifier(name: str) -> str:
    """Validate and quote a PostgreSQL identifier to prevent SQL injection.

    Ensures the name is a valid SQL identifier, then double-quotes it.
    Rejects anything that isn't alphanumeric/underscores (plus dots for schema.table).

    Args:
        name: SQL identifier (table name, column name, schema name)

    Returns:
        Safely quoted identifier (e.g., '"public"."my_table"')

    Raises:
        ValueError: If the identifier contains invalid characters
    """
    if "." in name:
        parts = name.split(".", 1)
        return f"{safe_identifier(parts[0])}.{safe_identifier(parts[1])}"

    return f'"{_validate_identifier(name)}"'


def mysql_identifier(name: str) -> str:
    """Validate and backtick-quote a MySQL identifier.

    Args:
        name: SQL identifier (table name or column name)

    Returns:
        Safely quoted identifier (e.g., '`orders`')

    Raises:
        ValueError: If the identifier contains invalid characters
    """
    if "." in name:
        parts = name.split(".", 1)
        return f"{mysql_identifier(parts[0])}.{mysql_identifier(parts[1])}"

    return f"`{_validate_identifier(name)}`"
