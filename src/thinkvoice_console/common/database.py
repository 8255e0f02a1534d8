"""Async database manager for ThinkVoice Console (single-DB)."""

import ssl
from pathlib import Path
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from thinkvoice_console.common.config import ConsoleSettings, get_settings
from thinkvoice_console.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import thinkvoice_console.tenants.models  # noqa: F401
import thinkvoice_console.audit.models  # noqa: F401
import thinkvoice_console.voice.models  # noqa: F401
import thinkvoice_console.workspace.models  # noqa: F401


def build_connect_args(settings: ConsoleSettings) -> dict[str, Any]:
    """Translate DATABASE_SSL / DATABASE_SSL_REJECT_UNAUTHORIZED for asyncpg."""
    if not settings.is_postgres or not settings.database_ssl:
        return {}
    context = ssl.create_default_context()
    if not settings.database_ssl_reject_unauthorized:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return {"ssl": context}


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (url.endswith("://") or ":memory:" in url)


class DatabaseManager:
    """Manages a single async database engine."""

    def __init__(self, settings: ConsoleSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.async_database_url
        kwargs: dict[str, Any] = {"connect_args": build_connect_args(self._settings)}
        if _is_memory_sqlite(url):
            # One shared connection, otherwise each checkout sees an empty DB.
            kwargs["poolclass"] = StaticPool
        elif url.startswith("sqlite"):
            database = make_url(url).database
            if database:
                Path(database).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_async_engine(url, echo=False, **kwargs)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized; call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized; call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
