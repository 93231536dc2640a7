"""Pytest configuration for Case Connect."""
import os
import socket
import threading
import time
from pathlib import Path

import pytest
import uvicorn

from caseconnect.base.config import CaseConnectConfig, LogConfig, ServerConfig, set_config
from caseconnect.server.state import get_state


def pytest_configure():
    # Keep tests away from a developer's exported front-end in ./out
    os.environ.setdefault("CASECONNECT_STATIC_DIR", "/nonexistent-caseconnect-static")


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def wait_until(predicate, timeout: float = 3.0, interval: float = 0.02) -> bool:
    """Poll a cross-thread condition (the server runs on its own loop)."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fast_config(tmp_path):
    """Config with a short ping period so ping tests finish quickly."""
    config = CaseConnectConfig(
        server=ServerConfig(
            host="127.0.0.1",
            port=_free_port(),
            static_dir=Path(tmp_path) / "out",
            ping_interval=0.1,
        ),
        log=LogConfig(level="DEBUG"),
    )
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def live_server(fast_config):
    """Real uvicorn server on a background thread; yields the ws:// base URL."""
    from caseconnect.server.api import create_app

    server = uvicorn.Server(uvicorn.Config(
        create_app(fast_config),
        host=fast_config.server.host,
        port=fast_config.server.port,
        log_level="warning",
    ))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    if not wait_until(lambda: server.started, timeout=10.0):
        server.should_exit = True
        raise RuntimeError("uvicorn did not start")

    yield f"ws://{fast_config.server.host}:{fast_config.server.port}"

    server.should_exit = True
    thread.join(timeout=5)


@pytest.fixture
def registry():
    return get_state()


@pytest.fixture(name="wait_until")
def wait_until_fixture():
    return wait_until
