"""
devscope command line
"""
import asyncio
import time

import click
from rich.console import Console
from rich.live import Live
from rich.text import Text

from devscope.clients.collector_client import CollectorClient
from devscope.config.settings import settings
from devscope.indexer.log_indexer import ParseSession
from devscope.monitors.poller import AuditMonitor, LogTailMonitor, MetricsMonitor, Poller
from devscope.viewer.audit_view import render_audit
from devscope.viewer.log_browser import LEVEL_CHOICES, LogBrowser, render_detail
from devscope.viewer.metrics_view import render_config, render_metrics
from devscope.viewer.tail_view import render_tail

console = Console()

# Lines taken by the pager's header and status line
PAGER_CHROME = 4

PAGER_HELP = "j/k move  space/b page  g/G ends  / search  l level  s sort  d detail  q quit"


@click.group()
@click.version_option(version=settings.app_version, prog_name="devscope")
def cli():
    """Local request capture, audit and log browsing."""


@cli.command()
@click.option("--host", default=None, help="Bind host (default from settings)")
@click.option("--port", default=None, type=int, help="Bind port (default from settings)")
def collector(host, port):
    """Run the collector."""
    import uvicorn

    uvicorn.run(
        "devscope.main:app",
        host=host or settings.collector_host,
        port=port or settings.collector_port,
        reload=settings.debug,
        log_level="info",
    )


async def _watch(client: CollectorClient, monitor, render, interval: float, once: bool = False):
    """Poll ``monitor`` and redraw ``render(monitor)`` until interrupted"""
    try:
        if not await client.health_check():
            console.print(Text(f"Collector not reachable at {client.base_url}", style="yellow"))

        if once:
            await monitor.refresh()
            console.print(render(monitor))
            return

        with Live(render(monitor), console=console, refresh_per_second=4) as live:

            async def refresh():
                await monitor.refresh()
                live.update(render(monitor))

            poller = Poller(refresh, interval=interval)
            poller.start()
            try:
                while True:
                    await asyncio.sleep(3600)
            finally:
                await poller.stop()
    finally:
        await client.close()


def _run(coro):
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        pass


def _interval(interval):
    return interval if interval is not None else settings.poll_interval


async def _run_audit(project_path: str, collector_url: str, interval: float, clear: bool, once: bool):
    client = CollectorClient(base_url=collector_url)
    if clear and not await client.clear_performance():
        console.print(Text("Could not clear collector records", style="yellow"))
    await _watch(client, AuditMonitor(client, project_path), render_audit, interval, once)


@cli.command()
@click.argument("project_path")
@click.option("--collector-url", default=None, help="Collector base URL")
@click.option("--interval", default=None, type=float, help="Seconds between refreshes")
@click.option("--clear", is_flag=True, help="Drop the collector's in-memory records first")
@click.option("--once", is_flag=True, help="Print one snapshot and exit")
def audit(project_path, collector_url, interval, clear, once):
    """Live performance audit for PROJECT_PATH."""
    _run(_run_audit(project_path, collector_url or settings.collector_url, _interval(interval), clear, once))


@cli.command()
@click.argument("project_path")
@click.option("--collector-url", default=None, help="Collector base URL")
@click.option("--interval", default=None, type=float, help="Seconds between refreshes")
@click.option("--search", default="", help="Case-insensitive substring filter")
@click.option("--level", default="ALL", type=click.Choice(LEVEL_CHOICES, case_sensitive=False))
@click.option("--newest-first", is_flag=True, help="Sort by timestamp, newest at the top")
@click.option("--once", is_flag=True, help="Print one snapshot and exit")
def tail(project_path, collector_url, interval, search, level, newest_first, once):
    """Follow PROJECT_PATH's application log through the collector."""
    browser = LogBrowser(viewport_rows=_viewport_rows())
    browser.set_search(search)
    browser.set_level(level)
    if newest_first:
        browser.set_sort(True)

    client = CollectorClient(base_url=collector_url or settings.collector_url)
    monitor = LogTailMonitor(client, project_path, browser=browser)
    _run(_watch(client, monitor, render_tail, _interval(interval), once))


@cli.command()
@click.option("--collector-url", default=None, help="Collector base URL")
@click.option("--interval", default=None, type=float, help="Seconds between refreshes")
@click.option("--once", is_flag=True, help="Print one snapshot and exit")
def metrics(collector_url, interval, once):
    """Live collector telemetry, configuration and incidents."""
    client = CollectorClient(base_url=collector_url or settings.collector_url)
    _run(_watch(client, MetricsMonitor(client), render_metrics, _interval(interval), once))


async def _run_config(collector_url: str, updates):
    client = CollectorClient(base_url=collector_url)
    try:
        current = await client.fetch_config()
        if not current.ok:
            raise click.ClickException(f"Could not load collector config: {current.error}")

        config = current.data
        if updates:
            config = config.model_copy(update=updates)
            saved = await client.update_config(config)
            if not saved.ok:
                raise click.ClickException(f"Could not save collector config: {saved.error}")
            console.print(Text(saved.data.get("message", "Config saved."), style="green"))

        console.print(render_config(config))
    finally:
        await client.close()


@cli.command("config")
@click.option("--collector-url", default=None, help="Collector base URL")
@click.option("--cpu-threshold", type=click.IntRange(1, 100), default=None, help="Incident CPU threshold (%)")
@click.option("--access-log", default=None, help="Access log read when an incident is raised")
@click.option("--workspace-root", default=None, help="Directory holding the watched projects")
@click.option("--process-pattern", default=None, help="Regex matching the web processes to sample")
def config_command(collector_url, cpu_threshold, access_log, workspace_root, process_pattern):
    """Show the collector configuration, or change it."""
    updates = {
        key: value
        for key, value in {
            "cpu_threshold": cpu_threshold,
            "access_log_path": access_log,
            "workspace_root": workspace_root,
            "watch_process_pattern": process_pattern,
        }.items()
        if value is not None
    }
    asyncio.run(_run_config(collector_url or settings.collector_url, updates))


def _load_entries(path: str):
    session = ParseSession()
    start = time.perf_counter()
    with console.status(f"Loading {path}..."):
        entries = asyncio.run(session.load_file(path))

    if entries is None:
        raise click.ClickException(f"Could not read {path}: {session.error}")
    return entries, time.perf_counter() - start


def _viewport_rows() -> int:
    return max(1, console.size.height - PAGER_CHROME)


def _draw(browser: LogBrowser, title: str):
    browser.resize(_viewport_rows())
    console.clear()
    console.print(Text(title, style="bold"))
    console.print(browser.render())
    console.print(Text(PAGER_HELP, style="dim"))


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--search", default="", help="Case-insensitive substring filter")
@click.option("--level", default="ALL", type=click.Choice(LEVEL_CHOICES, case_sensitive=False))
@click.option("--sort", "sort_order", type=click.Choice(["source", "asc", "desc"]), default="source")
@click.option("--page", "page_only", is_flag=True, help="Print one window and exit")
@click.option("--offset", default=0, type=int, help="First line of the window with --page")
def logs(path, search, level, sort_order, page_only, offset):
    """Browse a log file of any size."""
    entries, elapsed = _load_entries(path)
    title = f"{path}: {len(entries):,} lines parsed in {elapsed:.2f}s"

    browser = LogBrowser(entries, viewport_rows=_viewport_rows())
    browser.set_search(search)
    browser.set_level(level)
    browser.set_sort({"source": None, "asc": False, "desc": True}[sort_order])

    if page_only:
        browser.move_cursor(offset)
        browser.window.scroll_to(offset)
        console.print(Text(title, style="bold"))
        console.print(browser.render())
        return

    while True:
        _draw(browser, title)
        key = click.getchar()

        if key == "q":
            break
        if browser.handle_key(key):
            continue

        if key == "/":
            browser.set_search(click.prompt("search", default="", show_default=False))
        elif key in ("d", "\r", "\n"):
            entry = browser.selected()
            if entry is not None:
                console.clear()
                console.print(render_detail(entry))
                console.print(Text("press any key", style="dim"))
                click.getchar()


def main():
    cli()


if __name__ == "__main__":
    main()
