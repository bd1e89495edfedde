"""
Summary reporter — the end-of-run listing.

One line per resource in declaration order, then the totals line.
Formatting never fails: an unknown status just gets a blank marker.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import click

from dotboot.core.models.result import ReconcileStatus, ReconciliationResult

MARKERS = {
    ReconcileStatus.CREATED: "✓",
    ReconcileStatus.UPDATED: "↻",
    ReconcileStatus.SKIPPED: "=",
    ReconcileStatus.FAILED: "✗",
}

COLORS = {
    ReconcileStatus.CREATED: "green",
    ReconcileStatus.UPDATED: "cyan",
    ReconcileStatus.SKIPPED: None,
    ReconcileStatus.FAILED: "red",
}


def format_line(result: ReconciliationResult) -> str:
    marker = MARKERS.get(result.status, " ")
    line = f"  {marker} {result.name}: {result.status}"
    if result.detail:
        line += f" ({result.detail})"
    return line


def format_totals(results: Sequence[ReconciliationResult]) -> str:
    counts = {status: 0 for status in ReconcileStatus}
    for result in results:
        counts[result.status] = counts.get(result.status, 0) + 1
    return ", ".join(f"{status}: {counts[status]}" for status in ReconcileStatus)


def format_summary(results: Sequence[ReconciliationResult]) -> list[str]:
    """Summary lines: one per resource, then the totals."""
    return [format_line(r) for r in results] + [format_totals(results)]


def report(
    results: Sequence[ReconciliationResult],
    echo: Callable[[str], None] | None = None,
) -> None:
    """Print the summary.

    Args:
        echo: Line printer; defaults to colored ``click.secho``.
    """
    if echo is not None:
        for line in format_summary(results):
            echo(line)
        return

    for result in results:
        click.secho(format_line(result), fg=COLORS.get(result.status))
    click.echo()
    color = "red" if any(r.failed for r in results) else "green"
    click.secho(format_totals(results), fg=color, bold=True)
