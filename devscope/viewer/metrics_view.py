"""
Rich rendering of collector telemetry and configuration
"""
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from devscope.config.settings import CollectorConfig
from devscope.models.telemetry import TelemetryStatus
from devscope.monitors.poller import MetricsMonitor
from devscope.viewer.audit_view import render_incident

# Full-scale values for the gauges
WEB_MEMORY_SCALE_MB = 1024
COLLECTOR_MEMORY_SCALE_MB = 512
WORKER_SCALE = 20

BAR_WIDTH = 30


def _gauge(value: float, scale: float, style: str) -> ProgressBar:
    return ProgressBar(total=scale, completed=min(max(0.0, value), scale), width=BAR_WIDTH, complete_style=style)


def render_telemetry(telemetry: TelemetryStatus) -> Table:
    stats = telemetry.system_stats
    table = Table(title="System Metrics", title_style="bold", expand=True)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("", no_wrap=True)

    table.add_row("Web memory", f"{stats.web_memory_mb:.2f} MB", _gauge(stats.web_memory_mb, WEB_MEMORY_SCALE_MB, "blue"))
    table.add_row("Web CPU", f"{stats.web_cpu_percent:.1f}%", _gauge(stats.web_cpu_percent, 100, "yellow"))
    table.add_row("Web workers", str(stats.web_worker_count), _gauge(stats.web_worker_count, WORKER_SCALE, "cyan"))
    table.add_row(
        "Collector memory",
        f"{stats.memory_usage_mb:.2f} MB",
        _gauge(stats.memory_usage_mb, COLLECTOR_MEMORY_SCALE_MB, "white"),
    )
    table.add_row("Collector threads", str(stats.num_threads), "")

    status = Text("Active", style="green") if telemetry.web_running else Text("Unreachable", style="red")
    table.add_row("Web processes", status, "")
    return table


def render_config(config: CollectorConfig) -> Panel:
    table = Table(show_header=False, box=None, expand=True)
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Host", config.host)
    table.add_row("Port", str(config.port))
    table.add_row("Workspace root", Text(config.workspace_root or "-"))
    table.add_row("CPU threshold", f"{config.cpu_threshold}%")
    table.add_row("Access log", Text(config.access_log_path or "-"))
    table.add_row("Process pattern", Text(config.watch_process_pattern))
    table.add_row("Ignored projects", Text(", ".join(config.ignored_projects) or "-"))
    return Panel(table, title="Collector Configuration")


def render_metrics(monitor: MetricsMonitor) -> RenderableType:
    parts = [Text("System Metrics", style="bold magenta"), render_incident(monitor.incident)]

    if monitor.error:
        parts.append(Text(f"Collector unreachable: {monitor.error}", style="red"))

    if not monitor.loaded:
        parts.append(Text("Connecting to collector...", style="dim"))
        return Group(*parts)

    parts.append(render_telemetry(monitor.telemetry))
    if monitor.config is not None:
        parts.append(render_config(monitor.config))

    if monitor.last_refresh:
        parts.append(Text(f"refreshed {monitor.last_refresh:%H:%M:%S}", style="dim"))
    return Group(*parts)
