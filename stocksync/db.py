# stocksync/db.py
from __future__ import annotations

import pathlib
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    async_sessionmaker,
    AsyncSession,
)
from sqlalchemy.orm import DeclarativeBase

from stocksync.config import settings

logger = logging.getLogger("uvicorn.error")

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


class Base(DeclarativeBase):
    pass


def _resolve_dsn() -> str:
    """
    Use settings.DATABASE_URL, else default to a local SQLite database under ./data/.
    """
    dsn = settings.DATABASE_URL or "sqlite+aiosqlite:///./data/stocksync.db"

    # If using SQLite, make sure the folder exists so SQLAlchemy can create the file.
    if dsn.startswith("sqlite") and ":memory:" not in dsn:
        try:
            sep = "///" if "///" in dsn else "//"
            path_part = dsn.split(sep, 1)[1] if sep in dsn else ""
            if path_part:
                path = pathlib.Path(path_part).resolve()
                path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("[DB] Could not ensure SQLite directory exists: %s", e)

    return dsn


def get_engine() -> AsyncEngine:
    """
    Lazily create a global AsyncEngine and sessionmaker.
    """
    global _engine, _sessionmaker
    if _engine is None:
        dsn = _resolve_dsn()
        _engine = create_async_engine(
            dsn,
            echo=False,
            pool_pre_ping=True,
        )
        _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False)
        logger.info("[DB] engine initialized for %s", dsn)
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """
    Get the global async session factory.
    """
    if _sessionmaker is None:
        get_engine()
    return _sessionmaker  # type: ignore[return-value]


async def init_db() -> None:
    """
    Ensure the engine is created and all ORM tables exist.
    """
    # register models on Base.metadata
    from stocksync.models import accounts, sync_history  # noqa: F401

    eng = get_engine()
    try:
        async with eng.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error("[DB] initial connect failed: %s", e)
        raise


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
