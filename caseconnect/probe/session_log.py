"""
Append-only log sink for probe runs.

Entries carry a millisecond offset from the sink's creation, a severity, the
message, and an optional detail. Details are normalised into a small tagged
union up front, so turning any entry into a line can never fail.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Mapping

from caseconnect.errors import CaseConnectError

logger = logging.getLogger("caseconnect.probe")


class Level(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def logging_level(self) -> int:
        return {
            Level.INFO: logging.INFO,
            Level.WARN: logging.WARNING,
            Level.ERROR: logging.ERROR,
        }[self]


class DetailKind(str, Enum):
    NONE = "none"
    TEXT = "text"
    BINARY = "binary"
    ERROR = "error"
    MAPPING = "mapping"


def _error_fields(error: BaseException) -> Dict[str, Any]:
    if isinstance(error, CaseConnectError):
        fields = {"code": error.code.value, "message": error.message}
        if error.details:
            fields["details"] = error.details
        return fields
    return {"type": type(error).__name__, "message": str(error)}


@dataclass(frozen=True)
class Detail:
    kind: DetailKind = DetailKind.NONE
    value: Any = None

    @classmethod
    def of(cls, value: Any) -> Detail:
        if value is None:
            return NO_DETAIL
        if isinstance(value, Detail):
            return value
        if isinstance(value, BaseException):
            return cls(DetailKind.ERROR, _error_fields(value))
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(DetailKind.BINARY, bytes(value))
        if isinstance(value, Mapping):
            return cls(DetailKind.MAPPING, dict(value))
        if isinstance(value, str):
            return cls(DetailKind.TEXT, value)
        return cls(DetailKind.TEXT, repr(value))

    def render(self) -> str:
        if self.kind == DetailKind.NONE:
            return ""
        if self.kind == DetailKind.BINARY:
            return f"<{len(self.value)} bytes {self.value.hex()}>"
        if self.kind == DetailKind.TEXT:
            return json.dumps(self.value)
        # ERROR and MAPPING; default=str keeps odd values (enums, paths) printable
        return json.dumps(self.value, default=str, sort_keys=True)


NO_DETAIL = Detail()


@dataclass(frozen=True)
class LogEntry:
    t: int
    level: Level
    msg: str
    detail: Detail = field(default=NO_DETAIL)

    def line(self) -> str:
        text = f"[{self.t:>6}] {self.msg}"
        rendered = self.detail.render()
        if rendered:
            text = f"{text}  {rendered}"
        return text


class SessionLog:
    """Ordered, append-only. Only clear() removes entries."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._origin = clock()
        self._entries: List[LogEntry] = []

    def add(self, level: Level, msg: str, detail: Any = None) -> LogEntry:
        entry = LogEntry(
            t=int(round((self._clock() - self._origin) * 1000)),
            level=level,
            msg=msg,
            detail=Detail.of(detail),
        )
        self._entries.append(entry)
        logger.log(level.logging_level, entry.line())
        return entry

    def info(self, msg: str, detail: Any = None) -> LogEntry:
        return self.add(Level.INFO, msg, detail)

    def warn(self, msg: str, detail: Any = None) -> LogEntry:
        return self.add(Level.WARN, msg, detail)

    def error(self, msg: str, detail: Any = None) -> LogEntry:
        return self.add(Level.ERROR, msg, detail)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def messages(self) -> List[str]:
        return [e.msg for e in self._entries]

    def lines(self) -> List[str]:
        return [e.line() for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))
