"""
Filterable, windowed view over parsed log entries
"""
from typing import List, Optional, Sequence

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from devscope.config.settings import settings
from devscope.indexer.detail import expand_detail
from devscope.indexer.log_indexer import ALL_LEVELS, filter_entries, sort_by_timestamp
from devscope.models.log_entry import LOG_LEVELS, UNKNOWN_LEVEL, LogEntry
from devscope.viewer.virtual_window import PlacedItem, VirtualWindow

LEVEL_CHOICES = (ALL_LEVELS,) + LOG_LEVELS

LEVEL_STYLES = {
    "ERROR": "red",
    "CRITICAL": "red",
    "ALERT": "red",
    "EMERGENCY": "bold red",
    "WARNING": "yellow",
    "NOTICE": "blue",
    "INFO": "green",
    "DEBUG": "magenta",
}

KEYS_DOWN = ("j", "\x1b[B")
KEYS_UP = ("k", "\x1b[A")
KEYS_PAGE_DOWN = (" ", "\x1b[6~")
KEYS_PAGE_UP = ("b", "\x1b[5~")


def level_style(level: str) -> str:
    return LEVEL_STYLES.get(level, "dim")


class LogBrowser:
    """Cursor, filters and scroll state for one parsed log"""

    def __init__(
        self,
        entries: Sequence[LogEntry] = (),
        viewport_rows: int = 20,
        buffer_count: Optional[int] = None,
    ):
        self.entries: List[LogEntry] = list(entries)
        self.search = ""
        self.level = ALL_LEVELS
        # None keeps source order
        self.sort_descending: Optional[bool] = None
        self.cursor = 0
        self.window = VirtualWindow(
            item_extent=1,
            viewport_extent=viewport_rows,
            buffer_count=settings.row_buffer if buffer_count is None else buffer_count,
        )
        self.view: List[LogEntry] = []
        self._refilter()

    # -- sequence changes -------------------------------------------------

    def _refilter(self):
        view = filter_entries(self.entries, self.search, self.level)
        if self.sort_descending is not None:
            view = sort_by_timestamp(view, descending=self.sort_descending)
        self.view = view
        self.window.set_total(len(view))
        self.cursor = min(self.cursor, max(0, len(view) - 1))
        self.window.scroll_to_index(self.cursor)

    def set_entries(self, entries: Sequence[LogEntry], keep_position: bool = False):
        """Swap in a new sequence; live sources keep the cursor where it was"""
        self.entries = list(entries)
        if not keep_position:
            self.cursor = 0
            self.window.scroll_to(0)
        self._refilter()

    def follow(self):
        """Select the newest line: the bottom in source or oldest-first order"""
        if self.sort_descending:
            self.move_cursor(-len(self.view))
        else:
            self.move_cursor(len(self.view))

    def set_search(self, search: str):
        self.search = search
        self._refilter()

    def set_level(self, level: str):
        self.level = level.upper() if level else ALL_LEVELS
        self._refilter()

    def cycle_level(self):
        idx = LEVEL_CHOICES.index(self.level) if self.level in LEVEL_CHOICES else -1
        self.set_level(LEVEL_CHOICES[(idx + 1) % len(LEVEL_CHOICES)])

    def set_sort(self, descending: Optional[bool]):
        self.sort_descending = descending
        self._refilter()

    def toggle_sort(self):
        """source order -> oldest first -> newest first -> source order"""
        if self.sort_descending is None:
            self.sort_descending = False
        elif self.sort_descending is False:
            self.sort_descending = True
        else:
            self.sort_descending = None
        self._refilter()

    # -- navigation -------------------------------------------------------

    def resize(self, viewport_rows: int):
        self.window.resize(max(1, viewport_rows))
        self.window.scroll_to_index(self.cursor)

    def move_cursor(self, delta: int):
        if not self.view:
            self.cursor = 0
            return
        self.cursor = min(max(0, self.cursor + delta), len(self.view) - 1)
        self.window.scroll_to_index(self.cursor)

    def page(self, pages: int):
        self.move_cursor(pages * max(1, int(self.window.viewport_extent)))

    def handle_key(self, key: str) -> bool:
        """Apply a navigation key; False means the key was not handled"""
        if key in KEYS_DOWN:
            self.move_cursor(1)
        elif key in KEYS_UP:
            self.move_cursor(-1)
        elif key in KEYS_PAGE_DOWN:
            self.page(1)
        elif key in KEYS_PAGE_UP:
            self.page(-1)
        elif key == "g":
            self.move_cursor(-len(self.view))
        elif key == "G":
            self.move_cursor(len(self.view))
        elif key == "l":
            self.cycle_level()
        elif key == "s":
            self.toggle_sort()
        else:
            return False
        return True

    def selected(self) -> Optional[LogEntry]:
        if not self.view:
            return None
        return self.view[self.cursor]

    def visible_rows(self) -> List[PlacedItem[LogEntry]]:
        """Materialized rows that fall inside the viewport"""
        bottom = self.window.scroll_offset + self.window.viewport_extent
        return [
            placed for placed in self.window.materialize(self.view)
            if placed.offset + self.window.item_extent > self.window.scroll_offset
            and placed.offset < bottom
        ]

    # -- rendering --------------------------------------------------------

    def status_line(self) -> str:
        order = {None: "source order", False: "oldest first", True: "newest first"}[self.sort_descending]
        parts = [f"Found {len(self.view):,} matches of {len(self.entries):,}", f"level={self.level}", order]
        if self.search:
            parts.append(f"search={self.search!r}")
        return " | ".join(parts)

    def render(self) -> Group:
        table = Table(show_header=False, box=None, expand=True, padding=(0, 1))
        table.add_column("timestamp", width=21, no_wrap=True, style="dim")
        table.add_column("level", width=9, no_wrap=True)
        table.add_column("message", ratio=1, no_wrap=True, overflow="ellipsis")

        for placed in self.visible_rows():
            entry = placed.item
            row_style = "reverse" if placed.index == self.cursor else None
            table.add_row(
                Text(f"[{entry.timestamp}]") if entry.timestamp else "",
                Text(entry.level if entry.level != UNKNOWN_LEVEL else "", style=level_style(entry.level)),
                Text(entry.message),
                style=row_style,
            )

        if not self.view:
            table.add_row("", "", Text("No matching lines", style="dim"))

        return Group(table, Text(self.status_line(), style="dim"))


def render_detail(entry: LogEntry) -> Panel:
    """Full message with any embedded payload pretty-printed, plus the raw line"""
    detail = expand_detail(entry.message)

    header = Text()
    header.append(entry.level, style=level_style(entry.level))
    if entry.timestamp:
        header.append(f"  {entry.timestamp}", style="dim")
    if entry.category:
        header.append(f"  [{entry.category}]", style="dim")

    body = Text(detail.render(), style="green" if detail.is_structured else "")
    raw = Text(entry.raw, style="dim")

    return Panel(
        Group(header, Text(), body, Text(), Text("Raw line", style="bold dim"), raw),
        title=f"line {entry.line_no + 1}",
    )
