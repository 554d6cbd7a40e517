from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import typer

from .log_store import LogStore, status_glyph
from .records import InstallRecord, format_timestamp

ERROR_EXCERPT_CHARS = 100


def filter_history(
    records: Sequence[InstallRecord],
    recent: Optional[int] = None,
    method: Optional[str] = None,
) -> List[InstallRecord]:
    """Apply the method filter first, then keep the last ``recent`` survivors."""
    selected = list(records)
    if method is not None:
        selected = [record for record in selected if record.method_name == method]
    if recent is not None:
        if recent < 0:
            raise ValueError("recent must be zero or a positive integer")
        selected = selected[len(selected) - recent:] if recent < len(selected) else selected
    return selected


def render_history(records: Sequence[InstallRecord]) -> str:
    lines = ["", "R Package Installation History", "=" * 50, ""]
    for record in records:
        lines.append(f"{status_glyph(record.success)} {format_timestamp(record.timestamp)}")
        lines.append(f"   Method: {record.method_name}")
        lines.append(f"   Packages: {', '.join(record.packages)}")
        if record.actual_command:
            lines.append(f"   Command: {record.actual_command}")
        if not record.success and record.output:
            lines.append(f"   Error: {record.output[:ERROR_EXCERPT_CHARS]}")
        lines.append("")
    return "\n".join(lines)


class HistoryViewer:
    def __init__(self, store: LogStore, echo: Callable[[str], None] = typer.echo) -> None:
        self.store = store
        self.echo = echo

    def show(self, recent: Optional[int] = None, method: Optional[str] = None) -> List[InstallRecord]:
        if not self.store.exists():
            self.echo("No installation history found")
            return []
        records = filter_history(self.store.read_all(), recent=recent, method=method)
        self.echo(render_history(records))
        return records


__all__ = ["HistoryViewer", "filter_history", "render_history"]
