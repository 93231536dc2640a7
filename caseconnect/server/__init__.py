# ============================================================================
# caseconnect/server/__init__.py
# Server Package - FastAPI Web Server
# ============================================================================
#
# PURPOSE:
# One HTTP listener that hands WebSocket upgrades to per-path acceptors and
# serves a couple of plain HTTP pages next to them.
#
# ENDPOINTS:
# - WebSocket /ws-echo      - every message echoed back verbatim
# - WebSocket /ws-ping      - "pong" pushed on a fixed interval
# - WebSocket /web-demo/ws* - one "demo: handshake ok" greeting
# - GET /health             - liveness + open connection count
# - GET /smoke              - in-browser smoke page
#
# KEY MODULES:
# - **api.py**: FastAPI application and uvicorn entry point
# - **upgrade.py**: Path-based upgrade dispatch (ASGI middleware)
# - **state.py**: Registry of open connections and their timers
#
# ============================================================================
