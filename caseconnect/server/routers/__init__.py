"""
Router initialization module.

Exports the HTTP router and the WebSocket acceptors.
"""
from caseconnect.server.routers import realtime, system

__all__ = [
    "realtime",
    "system",
]
