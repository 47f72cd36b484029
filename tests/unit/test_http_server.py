from __future__ import annotations

import pytest

from contentintel.config.settings import PipelineSettings
from contentintel.http_app import app
from contentintel.http_server import run_http_server, server_config


def test_server_config_follows_settings() -> None:
    settings = PipelineSettings(
        _env_file=None,
        http_host="0.0.0.0",
        http_port=9100,
        http_keep_alive_seconds=120,
        http_graceful_shutdown_seconds=0,
    )

    config = server_config(settings)

    assert config.app is app
    assert (config.host, config.port) == ("0.0.0.0", 9100)
    assert config.timeout_keep_alive == 120
    assert config.timeout_graceful_shutdown is None
    assert config.access_log is False


@pytest.mark.asyncio
async def test_disabled_server_returns_immediately() -> None:
    await run_http_server(PipelineSettings(_env_file=None, http_enable=False))
