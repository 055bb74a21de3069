# src/daer/storage/db.py
"""Database engine ownership, sessions and PostgreSQL helpers."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import BigInteger, bindparam
from sqlalchemy import text as sa_text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func, select
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from daer.models import sqlalchemy_models  # noqa: F401  registers tables
from daer.models.base import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns one async engine and its session factory.

    Constructed explicitly and handed to the services that need it; nothing
    in the package opens a connection at import time.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = make_url(url)
        kwargs: dict[str, object] = {"echo": echo}
        if self.url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.url.database in (None, "", ":memory:"):
                # One shared connection so every session sees the same tables.
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        self.engine: AsyncEngine = create_async_engine(self.url, **kwargs)
        self.sessionmaker = async_sessionmaker(
            bind=self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def is_postgres(self) -> bool:
        return self.url.get_backend_name() == "postgresql"

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; the caller commits, anything unhandled rolls back."""
        async with self.sessionmaker() as session:
            try:
                yield session
            except BaseException:
                await session.rollback()
                raise

    async def ping(self) -> None:
        async with self.session() as session:
            await session.execute(sa_text("SELECT 1"))

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("db.schema.ready", extra={"tables": len(Base.metadata.tables)})

    async def dispose(self) -> None:
        await self.engine.dispose()

    def __repr__(self) -> str:
        return f"Database({self.url.render_as_string(hide_password=True)!r})"


@asynccontextmanager
async def advisory_lock(session: AsyncSession, lock_id: int) -> AsyncIterator[None]:
    """Hold a PostgreSQL session-level advisory lock.

    Uses explicit bigint binds so psycopg does not send the key as NUMERIC.
    """
    stmt_lock = select(func.pg_advisory_lock(bindparam("id", type_=BigInteger))).params(
        id=int(lock_id)
    )
    await session.execute(stmt_lock)
    try:
        yield
    finally:
        stmt_unlock = select(
            func.pg_advisory_unlock(bindparam("id", type_=BigInteger))
        ).params(id=int(lock_id))
        await session.execute(stmt_unlock)


async def wait_for_database(
    database: Database, *, attempts: int = 20, wait_seconds: float = 1.5
) -> None:
    """Block until ``SELECT 1`` succeeds or ``attempts`` are exhausted."""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(wait_seconds),
        retry=retry_if_exception_type(Exception),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            await database.ping()
    logger.info("db.ready", extra={"database": repr(database)})


__all__ = ["Database", "advisory_lock", "wait_for_database"]
