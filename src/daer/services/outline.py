# src/daer/services/outline.py
"""Outline version history.

Versions are append-only and numbered per novel from 1. Creating a version
also points ``Novel.current_outline_version`` at it. Rollback copies a past
version forward as a new version instead of rewriting history.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from daer.core.errors import NotFoundError
from daer.models.enums import GenerationMode
from daer.models.sqlalchemy_models import NovelSQL, OutlineVersionSQL

logger = logging.getLogger(__name__)


async def list_versions(session: AsyncSession, novel_id: UUID) -> list[OutlineVersionSQL]:
    """All versions of the novel, newest first."""
    result = await session.execute(
        select(OutlineVersionSQL)
        .where(OutlineVersionSQL.novel_id == novel_id)
        .order_by(OutlineVersionSQL.version.desc())
    )
    return list(result.scalars())


async def get_version(
    session: AsyncSession, version_id: UUID, novel_id: UUID | None = None
) -> OutlineVersionSQL | None:
    row = await session.get(OutlineVersionSQL, version_id)
    if row is None or (novel_id is not None and row.novel_id != novel_id):
        return None
    return row


async def latest_version_number(session: AsyncSession, novel_id: UUID) -> int:
    value = await session.scalar(
        select(func.max(OutlineVersionSQL.version)).where(
            OutlineVersionSQL.novel_id == novel_id
        )
    )
    return int(value or 0)


async def create_version(
    session: AsyncSession,
    novel_id: UUID,
    content: str,
    context: dict[str, Any] | None = None,
    mode: GenerationMode | str = GenerationMode.INITIAL,
    *,
    commit: bool = True,
) -> OutlineVersionSQL:
    """Append a version numbered one past the latest and make it current.

    The ``(novel_id, version)`` unique constraint rejects a concurrent writer
    that computed the same number.
    """
    version = await latest_version_number(session, novel_id) + 1
    row = OutlineVersionSQL(
        novel_id=novel_id,
        content=content,
        version=version,
        generation_mode=GenerationMode(mode).value,
        generation_context=context,
        is_locked=False,
    )
    session.add(row)
    await session.execute(
        update(NovelSQL)
        .where(NovelSQL.id == novel_id)
        .values(current_outline_version=version)
    )
    if commit:
        await session.commit()
        await session.refresh(row)
    else:
        await session.flush()
    logger.info(
        "outline.version.created",
        extra={"novel_id": str(novel_id), "version": version, "mode": row.generation_mode},
    )
    return row


async def set_lock(
    session: AsyncSession, version_id: UUID, is_locked: bool, novel_id: UUID | None = None
) -> OutlineVersionSQL:
    row = await get_version(session, version_id, novel_id)
    if row is None:
        raise NotFoundError("Outline version not found")
    row.is_locked = bool(is_locked)
    await session.commit()
    await session.refresh(row)
    return row


async def rollback(
    session: AsyncSession, novel_id: UUID, target_version_id: UUID
) -> OutlineVersionSQL:
    """Create a new version whose content equals the target's."""
    target = await get_version(session, target_version_id, novel_id)
    if target is None:
        raise NotFoundError("Target version not found")
    context = dict(target.generation_context or {})
    context["rollbackFrom"] = target.version
    return await create_version(
        session, novel_id, target.content, context, GenerationMode.ROLLBACK
    )


__all__ = [
    "create_version",
    "get_version",
    "latest_version_number",
    "list_versions",
    "rollback",
    "set_lock",
]
