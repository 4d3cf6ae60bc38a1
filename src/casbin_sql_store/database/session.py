"""Engine construction for adapters that are given a database URL."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError

from casbin_sql_store.config import Settings, settings as default_settings
from casbin_sql_store.exceptions import ConfigurationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


def engine_kwargs(database_url: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    settings = settings or default_settings
    kwargs: Dict[str, Any] = {
        "echo": settings.db_echo,
        "pool_pre_ping": True,
    }
    try:
        backend = make_url(database_url).get_backend_name()
    except ArgumentError as exc:
        raise ConfigurationError(f"invalid database URL: {exc}") from exc

    if backend == "sqlite":
        kwargs.setdefault("connect_args", {})
        kwargs["connect_args"].setdefault("timeout", settings.sqlite_busy_timeout_seconds)
    return kwargs


def create_sync_engine(database_url: str, settings: Optional[Settings] = None) -> Engine:
    """Create a synchronous engine, mapping URL/driver problems to ConfigurationError."""
    kwargs = engine_kwargs(database_url, settings)
    try:
        engine = create_engine(database_url, **kwargs)
    except (ArgumentError, ImportError) as exc:
        raise ConfigurationError(f"cannot create engine: {exc}") from exc
    logger.debug(f"Created sync engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_async_engine_from_url(
    database_url: str, settings: Optional[Settings] = None
) -> AsyncEngine:
    """Create an async engine; the URL must name an async driver (e.g. sqlite+aiosqlite)."""
    try:
        from sqlalchemy.ext.asyncio import create_async_engine
    except ImportError as exc:
        raise ConfigurationError(
            "async support needs the async extra: pip install casbin-sql-store[async]"
        ) from exc

    kwargs = engine_kwargs(database_url, settings)
    try:
        engine = create_async_engine(database_url, **kwargs)
    except (ArgumentError, ImportError) as exc:
        raise ConfigurationError(f"cannot create async engine: {exc}") from exc
    logger.debug(f"Created async engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


__all__ = [
    "create_async_engine_from_url",
    "create_sync_engine",
    "engine_kwargs",
]
