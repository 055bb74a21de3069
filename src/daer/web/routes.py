# src/daer/web/routes.py
"""REST routes: task submission and status, outline versions, chapters and AI settings."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from daer.agents import BACKGROUND_AGENT, run_agent
from daer.config import DaerConfig
from daer.core.errors import NotFoundError
from daer.models.enums import TaskType
from daer.models.schemas import (
    AIConfigCreate,
    AIConfigRead,
    AIConfigUpdate,
    BackgroundExpandRequest,
    ChapterPlanningRequest,
    ChapterRead,
    ChapterUpdate,
    ContentRequest,
    LockRequest,
    OutlineVersionCreate,
    OutlineVersionRead,
    TaskRead,
    TitleRequest,
)
from daer.models.sqlalchemy_models import NovelSQL
from daer.services import ai_settings
from daer.services import outline as outline_service
from daer.services.context import build_agent_context
from daer.services.tasks import TaskSubmitter
from daer.storage import crud
from daer.storage.tasks import TaskStore
from daer.web.deps import (
    get_config,
    get_owned_novel,
    get_session,
    get_submitter,
    get_task_store,
    get_user_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _task(row: Any) -> dict[str, Any]:
    return TaskRead.model_validate(row).to_wire()


# --- task submission ------------------------------------------------------


@router.post("/novels/{novel_id}/generate/outline")
async def generate_outline(
    body: dict[str, Any] | None = Body(default=None),
    novel: NovelSQL = Depends(get_owned_novel),
    submitter: TaskSubmitter = Depends(get_submitter),
):
    """Queue an outline generation; ``{mode, existingOutline}`` are optional."""
    data = {k: v for k, v in (body or {}).items() if k in ("mode", "existingOutline")}
    task = await submitter.submit(novel.id, TaskType.OUTLINE, data=data)
    return _task(task)


@router.post("/novels/{novel_id}/generate/titles")
async def generate_titles(
    body: TitleRequest | None = None,
    novel: NovelSQL = Depends(get_owned_novel),
    submitter: TaskSubmitter = Depends(get_submitter),
):
    body = body or TitleRequest()
    task = await submitter.submit(novel.id, TaskType.TITLE, data={"outline": body.outline})
    return _task(task)


@router.post("/novels/{novel_id}/generate/chapters")
async def generate_chapters(
    body: ChapterPlanningRequest | None = None,
    novel: NovelSQL = Depends(get_owned_novel),
    submitter: TaskSubmitter = Depends(get_submitter),
):
    body = body or ChapterPlanningRequest()
    task = await submitter.submit(
        novel.id,
        TaskType.CHAPTER_PLANNING,
        data={
            "outline": body.outline,
            "additionalRequirements": body.additional_requirements,
        },
    )
    return _task(task)


async def _submit_for_chapter(
    session: AsyncSession,
    submitter: TaskSubmitter,
    novel: NovelSQL,
    chapter_id: UUID,
    task_type: TaskType,
    data: dict[str, Any] | None = None,
    priority: int = 1,
) -> dict[str, Any]:
    chapter = await crud.require_chapter(session, chapter_id, novel.id)
    task = await submitter.submit(
        novel.id, task_type, chapter_id=chapter.id, data=data, priority=priority
    )
    return _task(task)


@router.post("/novels/{novel_id}/chapters/{chapter_id}/generate")
async def generate_content(
    chapter_id: UUID,
    body: ContentRequest | None = None,
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
    submitter: TaskSubmitter = Depends(get_submitter),
):
    data = body.model_dump(by_alias=True, exclude_none=True) if body else {}
    return await _submit_for_chapter(
        session, submitter, novel, chapter_id, TaskType.CONTENT, data, priority=2
    )


@router.post("/novels/{novel_id}/chapters/{chapter_id}/generate/outline")
async def generate_chapter_outline(
    chapter_id: UUID,
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
    submitter: TaskSubmitter = Depends(get_submitter),
):
    return await _submit_for_chapter(
        session, submitter, novel, chapter_id, TaskType.CHAPTER_OUTLINE
    )


@router.post("/novels/{novel_id}/chapters/{chapter_id}/generate/detail")
async def generate_chapter_detail(
    chapter_id: UUID,
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
    submitter: TaskSubmitter = Depends(get_submitter),
):
    return await _submit_for_chapter(
        session, submitter, novel, chapter_id, TaskType.CHAPTER_DETAIL
    )


@router.post("/novels/{novel_id}/chapters/{chapter_id}/check")
async def check_chapter(
    chapter_id: UUID,
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
    submitter: TaskSubmitter = Depends(get_submitter),
):
    return await _submit_for_chapter(
        session, submitter, novel, chapter_id, TaskType.CONSISTENCY_CHECK
    )


# --- task status ----------------------------------------------------------


async def _owned_task(
    task_id: UUID, tasks: TaskStore, session: AsyncSession, user_id: str
):
    task = await tasks.get(task_id)
    if task is None:
        raise NotFoundError("Task not found")
    # Tasks of other users' novels are indistinguishable from missing ones.
    if await crud.get_novel(session, task.novel_id, user_id) is None:
        raise NotFoundError("Task not found")
    return task


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: UUID,
    tasks: TaskStore = Depends(get_task_store),
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
):
    return _task(await _owned_task(task_id, tasks, session, user_id))


@router.get("/novels/{novel_id}/tasks")
async def list_novel_tasks(
    novel: NovelSQL = Depends(get_owned_novel),
    tasks: TaskStore = Depends(get_task_store),
):
    return [_task(row) for row in await tasks.list_by_novel(novel.id)]


@router.post("/tasks/{task_id}/cancel")
async def cancel_task(
    task_id: UUID,
    tasks: TaskStore = Depends(get_task_store),
    submitter: TaskSubmitter = Depends(get_submitter),
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
):
    """Cancel an open task. Cancelling a finished task is a no-op."""
    await _owned_task(task_id, tasks, session, user_id)
    await submitter.cancel(task_id)
    return _task(await tasks.get(task_id))


# --- outline versions -----------------------------------------------------


def _version(row: Any) -> dict[str, Any]:
    return OutlineVersionRead.model_validate(row).to_wire()


@router.get("/novels/{novel_id}/outline/versions")
async def list_outline_versions(
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
):
    return [_version(row) for row in await outline_service.list_versions(session, novel.id)]


@router.post("/novels/{novel_id}/outline/versions", status_code=201)
async def create_outline_version(
    body: OutlineVersionCreate,
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
):
    row = await outline_service.create_version(
        session, novel.id, body.content, body.context, body.mode
    )
    return _version(row)


@router.patch("/novels/{novel_id}/outline/versions/{version_id}/lock")
async def lock_outline_version(
    version_id: UUID,
    body: LockRequest,
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
):
    row = await outline_service.set_lock(session, version_id, body.is_locked, novel.id)
    return _version(row)


@router.post("/novels/{novel_id}/outline/versions/{version_id}/rollback", status_code=201)
async def rollback_outline_version(
    version_id: UUID,
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
):
    row = await outline_service.rollback(session, novel.id, version_id)
    return _version(row)


# --- background -----------------------------------------------------------


@router.post("/novels/{novel_id}/background/expand")
async def expand_background(
    request: Request,
    body: BackgroundExpandRequest | None = None,
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
    config: DaerConfig = Depends(get_config),
):
    """Return an expanded background text; nothing is saved."""
    context = await build_agent_context(session, novel)
    provider_config = await ai_settings.resolve_provider_config(session, novel.user_id, config.ai)
    provider = request.app.state.provider_factory(provider_config)
    response = await run_agent(
        provider, BACKGROUND_AGENT, context, {"instructions": body.instructions if body else None}
    )
    return {"content": response.content}


# --- chapters -------------------------------------------------------------


async def _owned_chapter(session: AsyncSession, chapter_id: UUID, user_id: str):
    chapter = await crud.require_chapter(session, chapter_id)
    if await crud.get_novel(session, chapter.novel_id, user_id) is None:
        raise NotFoundError("Chapter not found")
    return chapter


@router.get("/chapters/{chapter_id}")
async def get_chapter(
    chapter_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
):
    chapter = await _owned_chapter(session, chapter_id, user_id)
    return ChapterRead.model_validate(chapter).to_wire()


@router.patch("/chapters/{chapter_id}")
async def update_chapter(
    chapter_id: UUID,
    body: ChapterUpdate,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
):
    chapter = await _owned_chapter(session, chapter_id, user_id)
    if body.title is not None:
        chapter.title = body.title
    if body.content is not None:
        chapter.content = body.content
        chapter.word_count = len(body.content)
    await session.commit()
    await session.refresh(chapter)
    return ChapterRead.model_validate(chapter).to_wire()


# --- AI settings ----------------------------------------------------------


@router.get("/ai-config")
async def list_ai_configs(
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
):
    rows = await ai_settings.list_configs(session, user_id)
    return [AIConfigRead.from_row(row).to_wire() for row in rows]


@router.post("/ai-config", status_code=201)
async def create_ai_config(
    body: AIConfigCreate,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
):
    row = await ai_settings.create_config(session, user_id, body)
    return AIConfigRead.from_row(row).to_wire()


@router.patch("/ai-config/{config_id}")
async def update_ai_config(
    config_id: UUID,
    body: AIConfigUpdate,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
):
    row = await ai_settings.update_config(session, user_id, config_id, body)
    return AIConfigRead.from_row(row).to_wire()


@router.delete("/ai-config/{config_id}", status_code=204)
async def delete_ai_config(
    config_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
):
    await ai_settings.delete_config(session, user_id, config_id)
    return Response(status_code=204)


__all__ = ["router"]
