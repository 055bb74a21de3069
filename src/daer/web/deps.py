# src/daer/web/deps.py
"""Request-scoped dependencies: services, sessions and the caller's identity."""

from __future__ import annotations

from collections.abc import AsyncIterator
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from daer.config import DaerConfig
from daer.core.errors import AppError
from daer.models.sqlalchemy_models import NovelSQL
from daer.services.tasks import TaskSubmitter
from daer.storage import crud
from daer.storage.db import Database
from daer.storage.tasks import TaskStore


def get_config(request: Request) -> DaerConfig:
    return request.app.state.config


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_submitter(request: Request) -> TaskSubmitter:
    return request.app.state.submitter


def get_task_store(request: Request) -> TaskStore:
    return request.app.state.tasks


async def get_session(database: Database = Depends(get_database)) -> AsyncIterator[AsyncSession]:
    async with database.session() as session:
        yield session


def get_user_id(
    config: DaerConfig = Depends(get_config),
    x_user_id: str | None = Header(default=None),
) -> str:
    """Identify the caller; authentication itself happens upstream."""
    if x_user_id:
        return x_user_id
    if config.system.disable_auth:
        return config.system.default_user_id
    raise AppError("Unauthorized", 401)


async def get_owned_novel(
    novel_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
) -> NovelSQL:
    return await crud.require_novel(session, novel_id, user_id)


__all__ = [
    "get_config",
    "get_database",
    "get_owned_novel",
    "get_session",
    "get_submitter",
    "get_task_store",
    "get_user_id",
]
