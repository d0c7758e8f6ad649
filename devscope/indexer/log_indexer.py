"""
Line-oriented indexing of application log text
"""
import asyncio
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from devscope.models.log_entry import UNKNOWN_LEVEL, LogEntry
from devscope.utils.logger import logger

ALL_LEVELS = "ALL"

# [2024-01-01 10:00:00] local.ERROR: message
LINE_PATTERN = re.compile(r"^\[(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\] (\w+)\.(\w+): (.*)")


def parse_line(line_no: int, line: str) -> LogEntry:
    """Structured entry on a format match, raw UNKNOWN entry otherwise"""
    m = LINE_PATTERN.match(line)
    if m:
        return LogEntry(
            line_no=line_no,
            raw=line,
            timestamp=m.group(1),
            category=m.group(2),
            level=m.group(3).upper(),
            message=m.group(4),
        )

    return LogEntry(
        line_no=line_no,
        raw=line,
        timestamp="",
        category="",
        level=UNKNOWN_LEVEL,
        message=line,
    )


def parse_lines(lines: Iterable[str]) -> List[LogEntry]:
    """Blank lines are skipped; line numbers still count them"""
    entries = []
    for line_no, line in enumerate(lines):
        line = line.rstrip("\r\n")
        if not line.strip():
            continue
        entries.append(parse_line(line_no, line))
    return entries


def parse(text: str) -> List[LogEntry]:
    """One linear pass over ``text``; never raises for str input"""
    if not text:
        return []
    return parse_lines(text.split("\n"))


async def parse_async(text: str) -> List[LogEntry]:
    """
    Parse off the event loop.

    Yields once before the heavy pass so callers can render a loading state.
    """
    await asyncio.sleep(0)
    return await asyncio.to_thread(parse, text)


def read_log_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


def filter_entries(entries: Sequence[LogEntry], search: str = "", level: str = ALL_LEVELS) -> List[LogEntry]:
    """Case-insensitive substring match on the raw line, plus exact level"""
    if not search and level == ALL_LEVELS:
        return list(entries)

    needle = search.lower()
    return [
        entry for entry in entries
        if (not needle or needle in entry.raw.lower())
        and (level == ALL_LEVELS or entry.level == level)
    ]


def sort_by_timestamp(entries: Sequence[LogEntry], descending: bool = False) -> List[LogEntry]:
    """
    Stable sort on the timestamp string.

    The format is zero-padded, so string order is time order. Entries without
    a timestamp sort as the empty string.
    """
    return sorted(entries, key=lambda e: e.timestamp, reverse=descending)


class ParseSession:
    """
    Owns the entries of the most recently requested parse.

    Every load() takes a new generation; a parse that finishes after a newer
    one was requested is discarded instead of overwriting newer state.
    """

    def __init__(self):
        self.generation = 0
        self.entries: List[LogEntry] = []
        self.source: Optional[str] = None
        self.loading = False
        self.error: Optional[str] = None

    async def load_text(self, text: str, source: str = "<text>") -> Optional[List[LogEntry]]:
        self.generation += 1
        generation = self.generation
        self.loading = True
        self.error = None

        entries = await parse_async(text)

        if generation != self.generation:
            logger.debug("Discarding stale parse", source=source)
            return None

        self.entries = entries
        self.source = source
        self.loading = False
        return entries

    async def load_file(self, path: str) -> Optional[List[LogEntry]]:
        self.generation += 1
        generation = self.generation
        self.loading = True

        try:
            text = await asyncio.to_thread(read_log_text, path)
        except OSError as e:
            if generation == self.generation:
                self.loading = False
                self.error = str(e)
            logger.error("Failed to read log file", path=path, error=str(e))
            return None

        if generation != self.generation:
            return None
        return await self.load_text(text, source=path)
