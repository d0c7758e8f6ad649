"""
Detection and pretty-printing of structured payloads inside log messages
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Optional

# "free text {json}" as written by context-aware loggers
_TRAILING_BLOCK = re.compile(r"(.*?)(\{.*\})$", re.DOTALL)

_NOTHING = object()


@dataclass(frozen=True)
class MessageDetail:
    """A message split into leading text and a pretty-printed payload"""

    message: str
    prefix: str = ""
    payload: Optional[str] = None
    value: Any = None

    @property
    def is_structured(self) -> bool:
        return self.payload is not None

    def render(self) -> str:
        if self.payload is None:
            return self.message
        if self.prefix:
            return f"{self.prefix}\n\n{self.payload}"
        return self.payload


def pretty(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return _NOTHING


def expand_detail(message: str) -> MessageDetail:
    """Best-effort expansion; an unparseable message comes back unchanged"""
    trimmed = message.strip()

    if (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    ):
        value = _loads(trimmed)
        if value is _NOTHING:
            return MessageDetail(message=message)
        return MessageDetail(message=message, payload=pretty(value), value=value)

    m = _TRAILING_BLOCK.match(message)
    if m:
        value = _loads(m.group(2))
        if value is not _NOTHING:
            return MessageDetail(
                message=message,
                prefix=m.group(1).strip(),
                payload=pretty(value),
                value=value,
            )

    return MessageDetail(message=message)
