# src/daer/storage/crud.py
"""Queries and mutations on novels, chapters and their context."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daer.core.errors import NotFoundError
from daer.models.enums import ChapterStatus
from daer.models.results import ChapterStructure
from daer.models.sqlalchemy_models import (
    ChapterSQL,
    CharacterSQL,
    KnowledgeBaseSQL,
    NovelSQL,
    UserSQL,
    VolumeSQL,
)

logger = logging.getLogger(__name__)


async def ensure_user(session: AsyncSession, user_id: str) -> UserSQL:
    """Return the user row for ``user_id``, creating a placeholder if needed."""
    user = await session.get(UserSQL, user_id)
    if user is None:
        user = UserSQL(id=user_id, email=f"{user_id}@localhost", name=user_id)
        session.add(user)
        await session.flush()
    return user


async def get_novel(
    session: AsyncSession, novel_id: UUID, user_id: str | None = None
) -> NovelSQL | None:
    """Return the novel, optionally only when owned by ``user_id``."""
    novel = await session.get(NovelSQL, novel_id)
    if novel is None or (user_id is not None and novel.user_id != user_id):
        return None
    return novel


async def require_novel(
    session: AsyncSession, novel_id: UUID, user_id: str | None = None
) -> NovelSQL:
    novel = await get_novel(session, novel_id, user_id)
    if novel is None:
        raise NotFoundError("Novel not found")
    return novel


async def list_characters(session: AsyncSession, novel_id: UUID) -> list[CharacterSQL]:
    result = await session.execute(
        select(CharacterSQL)
        .where(CharacterSQL.novel_id == novel_id)
        .order_by(CharacterSQL.created_at, CharacterSQL.name)
    )
    return list(result.scalars())


async def knowledge_base_entries(session: AsyncSession, novel_id: UUID) -> list[str]:
    """Flatten every knowledge document of the novel into prompt text.

    Each document renders as ``"<title>:\\n<content>"``, in knowledge base
    then document creation order.
    """
    result = await session.execute(
        select(KnowledgeBaseSQL)
        .where(KnowledgeBaseSQL.novel_id == novel_id)
        .options(selectinload(KnowledgeBaseSQL.documents))
        .order_by(KnowledgeBaseSQL.created_at)
    )
    return [
        f"{doc.title}:\n{doc.content}"
        for kb in result.scalars()
        for doc in kb.documents
        if doc.content
    ]


async def get_chapter(
    session: AsyncSession, chapter_id: UUID, novel_id: UUID | None = None
) -> ChapterSQL | None:
    chapter = await session.get(ChapterSQL, chapter_id)
    if chapter is None or (novel_id is not None and chapter.novel_id != novel_id):
        return None
    return chapter


async def require_chapter(
    session: AsyncSession, chapter_id: UUID, novel_id: UUID | None = None
) -> ChapterSQL:
    chapter = await get_chapter(session, chapter_id, novel_id)
    if chapter is None:
        raise NotFoundError("Chapter not found")
    return chapter


async def previous_chapter_content(
    session: AsyncSession, chapter: ChapterSQL
) -> str | None:
    """Return the prose of the chapter preceding ``chapter`` in reading order.

    Reading order is volume order, then chapter order within the volume.
    """
    result = await session.execute(
        select(ChapterSQL.id, ChapterSQL.content)
        .join(VolumeSQL, VolumeSQL.id == ChapterSQL.volume_id)
        .where(ChapterSQL.novel_id == chapter.novel_id)
        .order_by(VolumeSQL.order, ChapterSQL.order)
    )
    previous: str | None = None
    for chapter_id, content in result.all():
        if chapter_id == chapter.id:
            return previous or None
        previous = content
    return None


async def update_chapter(
    session: AsyncSession, chapter_id: UUID, **values: Any
) -> None:
    """Write ``values`` to the chapter row in a single statement."""
    await session.execute(
        update(ChapterSQL).where(ChapterSQL.id == chapter_id).values(**values)
    )


async def insert_chapter_structure(
    session: AsyncSession, novel_id: UUID, structure: ChapterStructure
) -> tuple[int, int]:
    """Insert planned volumes and chapters with 1-based ``order`` values.

    Runs inside the caller's transaction; returns ``(volumes, chapters)``
    inserted.
    """
    chapter_total = 0
    for v_index, volume in enumerate(structure.volumes, start=1):
        volume_row = VolumeSQL(novel_id=novel_id, title=volume.title, order=v_index)
        session.add(volume_row)
        await session.flush()
        for c_index, chapter in enumerate(volume.chapters, start=1):
            session.add(
                ChapterSQL(
                    volume_id=volume_row.id,
                    novel_id=novel_id,
                    title=chapter.title,
                    order=c_index,
                    outline=chapter.summary,
                    status=ChapterStatus.PENDING.value,
                )
            )
            chapter_total += 1
    await session.flush()
    logger.info(
        "planning.persisted",
        extra={
            "novel_id": str(novel_id),
            "volumes": len(structure.volumes),
            "chapters": chapter_total,
        },
    )
    return len(structure.volumes), chapter_total


__all__ = [
    "ensure_user",
    "get_chapter",
    "get_novel",
    "insert_chapter_structure",
    "knowledge_base_entries",
    "list_characters",
    "previous_chapter_content",
    "require_chapter",
    "require_novel",
    "update_chapter",
]
