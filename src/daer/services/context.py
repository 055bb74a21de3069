# src/daer/services/context.py
"""Assemble the agent context for a novel (and optionally one chapter)."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from daer.agents import AgentContext
from daer.models.sqlalchemy_models import ChapterSQL, NovelSQL
from daer.storage import crud


async def build_agent_context(
    session: AsyncSession,
    novel: NovelSQL,
    *,
    chapter: ChapterSQL | None = None,
    previous_content: str | None = None,
) -> AgentContext:
    """Characters and knowledge documents of ``novel``.

    When ``chapter`` is given and no ``previous_content`` is supplied, the
    prose of the preceding chapter is used.
    """
    characters = await crud.list_characters(session, novel.id)
    knowledge = await crud.knowledge_base_entries(session, novel.id)
    if previous_content is None and chapter is not None:
        previous_content = await crud.previous_chapter_content(session, chapter)
    return AgentContext(
        novel=novel,
        characters=characters,
        knowledge_base=knowledge,
        previous_content=previous_content,
    )


__all__ = ["build_agent_context"]
