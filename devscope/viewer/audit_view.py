"""
Rich rendering of the live performance audit
"""
from typing import Sequence

from rich.columns import Columns
from rich.console import Group, RenderableType
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from devscope.models.incident import IncidentStatus, IncidentView
from devscope.models.records import CaptureRecord
from devscope.monitors.poller import AuditMonitor


def _ranking_table(title: str, style: str, records: Sequence[CaptureRecord], column: str, value) -> Table:
    table = Table(title=title, title_style=f"bold {style}", expand=True)
    table.add_column("URI", overflow="ellipsis", no_wrap=True)
    table.add_column(column, justify="right", style=style)
    for record in records:
        table.add_row(f"[dim]{escape(record.method)}[/dim] {escape(record.uri)}", str(value(record)))
    return table


def render_incident(view: IncidentView) -> RenderableType:
    if view.status == IncidentStatus.NOT_LOADED:
        return Text("Checking for incidents...", style="dim")
    if view.status == IncidentStatus.UNAVAILABLE:
        return Text(f"Alerts unavailable: {view.error}", style="yellow")
    if view.status == IncidentStatus.NONE or view.incident is None:
        return Text("No active incident", style="green")

    incident = view.incident
    body = Text()
    body.append(f"Load {incident.load_percent:.1f}% at {incident.timestamp:%Y-%m-%d %H:%M:%S}\n", style="bold")
    for line in incident.suspect_entries:
        body.append(f"{line}\n", style="dim")
    return Panel(body, title="Incident", border_style="red")


def render_audit(monitor: AuditMonitor) -> RenderableType:
    """Whole dashboard for the monitor's current state"""
    header = Text(f"Performance Audit  {monitor.project_path}", style="bold magenta")
    parts = [header, render_incident(monitor.incident)]

    if monitor.error:
        parts.append(Text(f"Collector unreachable: {monitor.error}", style="red"))

    if not monitor.loaded:
        parts.append(Text("Loading...", style="dim"))
        return Group(*parts)

    summary = monitor.summary
    if summary.is_empty:
        parts.append(Panel(
            "Perform some requests to your app to generate data.",
            title="No Performance Data Found",
        ))
        return Group(*parts)

    if summary.lock_errors:
        locks = Table(title=f"Lock errors ({len(summary.lock_errors)})", title_style="bold red", expand=True)
        locks.add_column("Time", width=20)
        locks.add_column("Message")
        for lock in summary.lock_errors:
            locks.add_row(lock.timestamp, Text(lock.message))
        parts.append(locks)

    parts.append(Columns([
        _ranking_table("Slowest Endpoints", "dark_orange", summary.slowest, "ms", lambda r: r.duration_ms),
        _ranking_table("Heavy Database", "blue", summary.heaviest_queries, "Queries", lambda r: r.query_count),
        _ranking_table("Memory Hogs", "magenta", summary.memory_hogs, "MB", lambda r: r.memory_mb),
    ], expand=True))

    operations = Table(title="Slow Operations", title_style="bold yellow", expand=True)
    operations.add_column("Operation", overflow="fold")
    operations.add_column("URI", no_wrap=True)
    operations.add_column("ms", justify="right", style="yellow")
    for op in summary.slow_operations:
        operations.add_row(Text(op.text), Text(op.uri), f"{op.duration_ms:.2f}")
    if not summary.slow_operations:
        operations.add_row(Text("None over threshold", style="dim"), "", "")
    parts.append(operations)

    footer = f"{summary.total_records} records"
    if monitor.last_refresh:
        footer += f" | refreshed {monitor.last_refresh:%H:%M:%S}"
    parts.append(Text(footer, style="dim"))
    return Group(*parts)
