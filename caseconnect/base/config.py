# ============================================================================
# caseconnect/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Every tunable of the smoke-tester lives here: where the server listens,
# how often the ping endpoint fires, which backend the probe client targets,
# and how logging is wired.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses per concern (server, probe, log)
# 2. Environment variables override defaults (PORT=8080, BACKEND_ORIGIN=...)
# 3. One shared config per process via get_config()/set_config()
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


# ============================================================================
# Server Configuration
# ============================================================================

@dataclass(frozen=True)
class ServerConfig:
    # 0.0.0.0 because the server normally sits behind a reverse proxy that
    # terminates TLS and forwards plain HTTP/WS traffic
    host: str = "0.0.0.0"

    port: int = 10000

    # Exported front-end bundle served at "/" (skipped when missing)
    static_dir: Path = field(default_factory=lambda: Path("out"))

    # Period of the /ws-ping acceptor, in seconds
    ping_interval: float = 2.0

    @property
    def listen_url(self) -> str:
        return f"http://{self.host}:{self.port}"


# ============================================================================
# Probe Client Configuration
# ============================================================================

@dataclass(frozen=True)
class ProbeConfig:
    # HTTP(S) origin of the backend under test. None = probe the local server.
    backend_origin: Optional[str] = None


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # Optional rotating log file; console only when unset
    file_path: Optional[Path] = None

    max_file_size_mb: int = 10

    backup_count: int = 5


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class CaseConnectConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_env(cls) -> "CaseConnectConfig":
        server = ServerConfig(
            host=os.getenv("CASECONNECT_HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "10000")),
            static_dir=Path(os.getenv("CASECONNECT_STATIC_DIR", "out")),
            ping_interval=float(os.getenv("CASECONNECT_PING_INTERVAL", "2.0")),
        )

        # Empty string counts as "not set" (common in .env templates)
        origin = os.getenv("BACKEND_ORIGIN") or None
        probe = ProbeConfig(backend_origin=origin)

        log_file = os.getenv("CASECONNECT_LOG_FILE")
        log = LogConfig(
            level=parse_log_level(os.getenv("CASECONNECT_LOG_LEVEL", "INFO")),
            file_path=Path(log_file) if log_file else None,
        )

        return cls(server=server, probe=probe, log=log)

    def ws_base(self) -> str:
        """
        Base WebSocket URL the probe client connects to.

        With BACKEND_ORIGIN set, the origin's host is kept and its scheme is
        swapped for the WebSocket equivalent (http -> ws, https -> wss).
        Otherwise the local server is probed over loopback.
        """
        if self.probe.backend_origin:
            return to_ws_origin(self.probe.backend_origin)
        return f"ws://127.0.0.1:{self.server.port}"


_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def parse_log_level(value: str) -> str:
    """
    Normalise a level name to what both logging and uvicorn accept.

    Case-insensitive; WARN is taken as WARNING.
    """
    level = value.strip().upper()
    if level == "WARN":
        level = "WARNING"
    if level not in _LOG_LEVELS:
        raise ValueError(
            f"Invalid CASECONNECT_LOG_LEVEL {value!r}; expected one of {', '.join(_LOG_LEVELS)}"
        )
    return level


def to_ws_origin(origin: str) -> str:
    """Swap an HTTP(S) origin for its WebSocket origin, dropping any path."""
    parsed = urlparse(origin)
    if not parsed.netloc:
        raise ValueError(f"Backend origin has no host: {origin!r}")
    scheme = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}.get(parsed.scheme.lower())
    if scheme is None:
        raise ValueError(f"Unsupported backend origin scheme: {parsed.scheme!r}")
    return f"{scheme}://{parsed.netloc}"


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[CaseConnectConfig] = None


def get_config() -> CaseConnectConfig:
    """
    Get the global configuration instance.

    Loaded from the environment on first use, then shared.
    """
    global _config
    if _config is None:
        _config = CaseConnectConfig.from_env()
    return _config


def set_config(config: Optional[CaseConnectConfig]) -> None:
    """
    Replace the global configuration (mainly used for testing).

    Passing None makes the next get_config() re-read the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[CaseConnectConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Call this once at process startup (server or CLI).
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_path is not None:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, parse_log_level(cfg.log.level)),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
