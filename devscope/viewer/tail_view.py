"""
Rich rendering of a live-polled project log
"""
from rich.console import Group, RenderableType
from rich.text import Text

from devscope.monitors.poller import LogTailMonitor


def render_tail(monitor: LogTailMonitor) -> RenderableType:
    parts = [Text(f"Log Viewer  {monitor.project_path}", style="bold magenta")]

    if monitor.error:
        parts.append(Text(f"Failed to load logs: {monitor.error}", style="red"))

    if not monitor.loaded:
        if not monitor.error:
            parts.append(Text("Loading logs...", style="dim"))
        return Group(*parts)

    if not monitor.lines:
        parts.append(Text("Log file is empty.", style="dim"))
        return Group(*parts)

    parts.append(monitor.browser.render())

    footer = f"Total: {len(monitor.lines)} lines"
    if monitor.last_refresh:
        footer += f" | refreshed {monitor.last_refresh:%H:%M:%S}"
    parts.append(Text(footer, style="dim"))
    return Group(*parts)
