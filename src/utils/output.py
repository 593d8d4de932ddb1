"""Formatted CLI output for archival results."""

from typing import Any

import click

_STATUS_COLORS = {
    "Completed": "green",
    "Skipped": "yellow",
    "Failed": "red",
    "Started": "cyan",
}


def print_header(title: str, width: int = 70, color: str = "cyan") -> None:
    click.echo()
    click.echo(click.style("=" * width, fg=color))
    click.echo(click.style(title, fg=color, bold=True))
    click.echo(click.style("=" * width, fg=color))
    click.echo()


def print_success(message: str) -> None:
    click.echo(click.style(f"✓ {message}", fg="green", bold=True))


def print_error(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red", bold=True), err=True)


def print_warning(message: str) -> None:
    click.echo(click.style(f"⚠ {message}", fg="yellow", bold=True))


def style_status(status: str) -> str:
    """Color a run status for terminal output."""
    return click.style(status, fg=_STATUS_COLORS.get(status, "white"), bold=True)


def print_log_table(entries: list[dict[str, Any]]) -> None:
    """Print archive log entries as an aligned table.

    Args:
        entries: Log entries as produced by ArchiveLog.to_dict()
    """
    if not entries:
        print_warning("No archive log entries found")
        return

    headers = ["ID", "Table", "Status", "Archived", "Purged", "Date", "Error"]
    rows = [
        [
            str(e["id"] if e["id"] is not None else "-"),
            e["table_name"],
            e["status"],
            str(e["records_archived"]),
            str(e["records_deleted"]),
            e["archive_date"][:19],
            e["error_message"] or "",
        ]
        for e in entries
    ]
    widths = [max(len(h), *(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

    click.echo("  ".join(click.style(h.ljust(w), fg="cyan", bold=True) for h, w in zip(headers, widths)))
    click.echo("  ".join("-" * w for w in widths))
    for row in rows:
        cells = [cell.ljust(w) for cell, w in zip(row, widths)]
        cells[2] = style_status(row[2]) + " " * (widths[2] - len(row[2]))
        click.echo("  ".join(cells).rstrip())


def print_sweep_summary(entries: list[dict[str, Any]]) -> None:
    """Print per-status counts and record totals for a sweep."""
    print_header("Archival Summary")
    counts: dict[str, int] = {}
    for e in entries:
        counts[e["status"]] = counts.get(e["status"], 0) + 1

    click.echo(click.style("  Tables: ", fg="white") + click.style(str(len(entries)), bold=True))
    for status in ("Completed", "Skipped", "Failed"):
        if counts.get(status):
            click.echo(f"    {style_status(status)}: {counts[status]}")
    archived = sum(e["records_archived"] for e in entries)
    purged = sum(e["records_deleted"] for e in entries)
    click.echo(click.style("  Records archived: ", fg="white") + click.style(str(archived), fg="cyan", bold=True))
    click.echo(click.style("  Records purged: ", fg="white") + click.style(str(purged), fg="cyan", bold=True))
    click.echo()
