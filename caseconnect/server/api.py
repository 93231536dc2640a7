# caseconnect/server/api.py
# FastAPI application: one HTTP listener carrying the health/smoke pages,
# the optional static front-end, and the three WebSocket endpoints.

from __future__ import annotations

import logging
import platform
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Optional

import uvicorn
from fastapi import FastAPI
from starlette.exceptions import HTTPException
from starlette.staticfiles import StaticFiles

from caseconnect.base.config import CaseConnectConfig, get_config, parse_log_level, set_config, setup_logging
from caseconnect.server.routers import realtime, system
from caseconnect.server.state import get_state
from caseconnect.server.upgrade import UpgradeRouter

logger = logging.getLogger(__name__)


class SPAStaticFiles(StaticFiles):
    """
    Static export server for extensionless routes.

    An unknown path is retried as "<path>.html" (so /about serves about.html)
    and only then falls back to index.html.
    """

    async def get_response(self, path: str, scope):
        candidates = [path]
        stem = path.rstrip("/")
        if stem not in ("", ".") and not stem.endswith(".html"):
            candidates.append(f"{stem}.html")
        candidates.append("index.html")

        for candidate in candidates[:-1]:
            try:
                return await super().get_response(candidate, scope)
            except HTTPException as exc:
                if exc.status_code != 404:
                    raise
        return await super().get_response(candidates[-1], scope)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = app.state.config
    logger.info(f"server_listen url={config.server.listen_url}")
    logger.info(f"boot_env PORT={config.server.port} python={platform.python_version()}")
    yield
    cancelled = get_state().cancel_timers()
    if cancelled:
        logger.info(f"Shutting down, cancelled {cancelled} ping timer(s)")


def create_app(config: Optional[CaseConnectConfig] = None) -> FastAPI:
    cfg = config or get_config()

    app = FastAPI(
        title="Case Connect",
        description="WebSocket connectivity smoke-test server",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.include_router(system.router)
    app.add_middleware(UpgradeRouter, routes=realtime.UPGRADE_ROUTES)

    # Mounted last so /health and /smoke win over the catch-all
    static_dir = cfg.server.static_dir
    if static_dir.is_dir():
        app.mount("/", SPAStaticFiles(directory=static_dir, html=True), name="static")
        logger.info(f"Serving static export from {static_dir}")
    else:
        logger.debug(f"Static export {static_dir} missing, not mounted")

    return app


app = create_app()


def serve(port: Optional[int] = None, host: Optional[str] = None):
    """Run the server until the process is terminated."""
    config = get_config()
    if port or host:
        server = replace(config.server, host=host or config.server.host, port=port or config.server.port)
        config = replace(config, server=server)
        set_config(config)
    setup_logging(config)
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=parse_log_level(config.log.level).lower(),
    )


if __name__ == "__main__":
    serve()
