"""Aggregate app for the shared room API."""
from __future__ import annotations

import logging

from fastapi import FastAPI

from soup_engines import __version__
from soup_engines.common.error_envelope import register_error_handlers
from soup_engines.common.health import router as health_router
from soup_engines.config import runtime_config
from soup_engines.host.routes import router as host_router
from soup_engines.puzzles.routes import router as puzzles_router
from soup_engines.sessions.routes import router as sessions_router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=runtime_config.get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Soup Rooms", version=__version__)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(puzzles_router)
    app.include_router(sessions_router)
    app.include_router(host_router)
    logger.info("Room API ready: %s", runtime_config.config_snapshot())
    return app


app = create_app()
