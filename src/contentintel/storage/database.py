"""Async SQLAlchemy engine for editor snapshots.

The engine is built on first use from settings, so importing this module
never touches the filesystem. SQLite files get their parent directory
created up front.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..config.settings import PipelineSettings, get_settings
from ..models.database import Base
from ..observability.logger import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


def _prepare_sqlite_path(database_url: str) -> dict:
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite"):
        return {}
    if url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    # seconds to wait on a locked database file
    return {"timeout": 15}


def get_engine(settings: PipelineSettings | None = None) -> AsyncEngine:
    global _engine, _sessions
    if _engine is None:
        settings = settings or get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            connect_args=_prepare_sqlite_path(settings.database_url),
        )
        _sessions = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
        logger.info("database_engine_created", driver=make_url(settings.database_url).drivername)
    return _engine


def session_factory() -> AsyncSession:
    """New session on the shared engine; use as `async with session_factory() as s`."""
    if _sessions is None:
        get_engine()
    assert _sessions is not None
    return _sessions()


async def init_db(settings: PipelineSettings | None = None) -> None:
    engine = get_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _sessions
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessions = None
