from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Connection:
    """One accepted WebSocket session, owned by the acceptor that accepted it."""
    id: int
    route: str
    target: str
    state: ConnectionState = ConnectionState.OPEN
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Repeat-send task; only the ping acceptor sets this
    timer: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN


class ApplicationState:
    """
    Process-wide registry of open connections.

    Only touched from the server's event loop, so no locking.
    """
    _instance = None

    @classmethod
    def instance(cls) -> ApplicationState:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self):
        self._ids = itertools.count(1)
        self.connections: Dict[int, Connection] = {}

    def open_connection(self, route: str, target: str) -> Connection:
        conn = Connection(id=next(self._ids), route=route, target=target)
        self.connections[conn.id] = conn
        logger.info(f"[{route}] connection accepted id={conn.id} target={target}")
        return conn

    def close_connection(self, conn: Connection) -> None:
        if conn.state == ConnectionState.CLOSED:
            return
        conn.state = ConnectionState.CLOSED
        self.connections.pop(conn.id, None)
        logger.info(f"[{conn.route}] connection closed id={conn.id}")

    def open_count(self) -> int:
        return len(self.connections)

    def active_timers(self) -> List[asyncio.Task]:
        return [c.timer for c in self.connections.values() if c.timer is not None and not c.timer.done()]

    def cancel_timers(self) -> int:
        """Cancel every live repeat timer (used at shutdown)."""
        timers = self.active_timers()
        for timer in timers:
            timer.cancel()
        return len(timers)


def get_state() -> ApplicationState:
    return ApplicationState.instance()
