"""
Parsed log line model
"""
from dataclasses import dataclass

UNKNOWN_LEVEL = "UNKNOWN"

# Filter choices offered by the viewer, in severity order
LOG_LEVELS = (
    "DEBUG",
    "INFO",
    "NOTICE",
    "WARNING",
    "ERROR",
    "CRITICAL",
    "ALERT",
    "EMERGENCY",
)

ERROR_LEVELS = frozenset({"ERROR", "CRITICAL", "ALERT", "EMERGENCY"})


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One non-empty source line, structured when it matched the line format"""

    line_no: int
    raw: str
    timestamp: str
    category: str
    level: str
    message: str

    @property
    def is_structured(self) -> bool:
        return bool(self.timestamp)
