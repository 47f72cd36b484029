"""Uvicorn runner for the FastAPI app."""

from __future__ import annotations

import uvicorn

from .config.settings import PipelineSettings, get_settings
from .http_app import app
from .observability.logger import get_logger

logger = get_logger(__name__)


def server_config(settings: PipelineSettings) -> uvicorn.Config:
    return uvicorn.Config(
        app=app,
        host=settings.http_host,
        port=settings.http_port,
        loop="asyncio",
        # structlog owns application logs; uvicorn only reports problems
        log_level="warning",
        access_log=False,
        timeout_keep_alive=settings.http_keep_alive_seconds,
        timeout_graceful_shutdown=settings.http_graceful_shutdown_seconds or None,
    )


async def run_http_server(settings: PipelineSettings | None = None) -> None:
    settings = settings or get_settings()
    if not settings.http_enable:
        logger.warning("http_server_disabled", service_name=settings.service_name)
        return

    server = uvicorn.Server(server_config(settings))
    logger.info(
        "http_server_starting",
        address=f"http://{settings.http_host}:{settings.http_port}",
        keep_alive_seconds=settings.http_keep_alive_seconds,
    )
    await server.serve()
    logger.info("http_server_stopped")
