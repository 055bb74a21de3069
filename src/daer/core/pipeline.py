# src/daer/core/pipeline.py
"""Execute one generation job from start to a terminal task state.

A job moves its task ``queued -> running -> completed | failed`` (or
``cancelled`` when a cancel lands while it runs). The steps inside a job run
strictly in order: load the novel and its context, resolve the provider,
call the agent for the task type, persist the artifacts, then record the
result and notify subscribers. Any exception becomes a failed task carrying
the exception message; nothing escapes :meth:`GenerationPipeline.run` except
errors from recording the failure itself.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import UUID

from daer.agents import (
    CHAPTER_DETAIL_AGENT,
    CHAPTER_OUTLINE_AGENT,
    CHAPTER_PLANNING_AGENT,
    CONSISTENCY_AGENT,
    CONTENT_AGENT,
    OUTLINE_AGENT,
    TITLE_AGENT,
    AgentContext,
    ChapterInfo,
    ContentRequest,
    OutlineRequest,
    PlanningRequest,
    parse_titles,
    run_agent,
    stream_agent,
)
from daer.config import AIFallbackConfig
from daer.core.errors import (
    ConsistencyCheckFailed,
    DaerError,
    NotFoundError,
    TaskCancelled,
)
from daer.core.json_extract import parse_consistency, parse_planning
from daer.core.llm import ChatProvider, ProviderFactory, create_provider
from daer.core.locks import ChapterLocks
from daer.models.enums import ChapterStatus, GenerationMode, TaskStatus, TaskType
from daer.models.results import (
    AgentResult,
    ChapterDetailResult,
    ChapterOutlineResult,
    ConsistencyResult,
    ContentResult,
    OutlineResult,
    PlanningResult,
    TitlesResult,
)
from daer.models.sqlalchemy_models import ChapterSQL
from daer.models.task import JobPayload
from daer.services import outline as outline_service
from daer.services.ai_settings import resolve_provider_config
from daer.services.context import build_agent_context
from daer.storage import crud
from daer.storage.db import Database
from daer.storage.tasks import TaskStore

logger = logging.getLogger(__name__)

CONTENT_WRITTEN_PROGRESS = 80


class Notifier(Protocol):
    """Where task events go. Delivery is best effort."""

    async def emit_to_task(self, task_id: str, event: str, data: dict[str, Any]) -> None: ...

    async def broadcast(self, event: str, data: dict[str, Any]) -> None: ...


@dataclass
class JobContext:
    """Everything a task handler needs, loaded once per job."""

    payload: JobPayload
    agent_context: AgentContext
    provider: ChatProvider
    chapter: ChapterSQL | None = None

    @property
    def task_id(self) -> UUID:
        return self.payload.task_id

    @property
    def novel_id(self) -> UUID:
        return self.payload.novel_id

    @property
    def data(self) -> dict[str, Any]:
        return self.payload.input or {}


Handler = Callable[[JobContext], Awaitable[AgentResult]]


class GenerationPipeline:
    def __init__(
        self,
        database: Database,
        notifier: Notifier,
        *,
        provider_factory: ProviderFactory = create_provider,
        ai_fallback: AIFallbackConfig | None = None,
        locks: ChapterLocks | None = None,
    ) -> None:
        self.database = database
        self.notifier = notifier
        self.provider_factory = provider_factory
        self.ai_fallback = ai_fallback
        self.locks = locks or ChapterLocks(database)
        self.tasks = TaskStore(database)
        self._handlers: dict[TaskType, Handler] = {
            TaskType.OUTLINE: self._outline,
            TaskType.TITLE: self._title,
            TaskType.CHAPTER_PLANNING: self._chapter_planning,
            TaskType.CHAPTER_OUTLINE: self._chapter_outline,
            TaskType.CHAPTER_DETAIL: self._chapter_detail,
            TaskType.CONTENT: self._content,
            TaskType.CONSISTENCY_CHECK: self._consistency_check,
        }

    # --- lifecycle --------------------------------------------------------

    async def run(self, payload: JobPayload) -> TaskStatus | None:
        """Process one job; returns the task's final status or ``None`` if skipped."""
        task_id = payload.task_id
        log_extra = {"task_id": str(task_id), "task_type": payload.type.value}

        if not await self.tasks.start(task_id):
            logger.info("task.skipped", extra=log_extra)
            return None
        logger.info("task.start", extra=log_extra)
        await self._progress(task_id, TaskStatus.RUNNING, 0)

        try:
            if payload.type.chapter_scoped and payload.chapter_id is not None:
                async with self.locks.hold(payload.chapter_id):
                    result = await self._execute(payload)
            else:
                result = await self._execute(payload)
        except TaskCancelled:
            logger.info("task.cancelled", extra=log_extra)
            await self._progress(task_id, TaskStatus.CANCELLED, None)
            return TaskStatus.CANCELLED
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            if isinstance(exc, DaerError):
                logger.warning("task.failed: %s", message, extra=log_extra)
            else:
                logger.exception("task.failed", extra=log_extra)
            if not await self.tasks.fail(task_id, message):
                # Cancelled while the step was failing; the cancel stands.
                logger.info("task.cancelled", extra=log_extra)
                await self._progress(task_id, TaskStatus.CANCELLED, None)
                return TaskStatus.CANCELLED
            await self.notifier.emit_to_task(
                str(task_id), "task:failed", {"taskId": str(task_id), "error": message}
            )
            return TaskStatus.FAILED

        stored = result.to_wire()
        metadata = {"model": result.model, "tokensUsed": result.tokens_used}
        if not await self.tasks.complete(task_id, stored, metadata):
            # Cancelled after the last checkpoint; the cancel stands.
            logger.info("task.cancelled", extra=log_extra)
            await self._progress(task_id, TaskStatus.CANCELLED, None)
            return TaskStatus.CANCELLED

        logger.info("task.completed", extra=log_extra)
        await self.notifier.emit_to_task(
            str(task_id), "task:completed", {"taskId": str(task_id), "result": stored}
        )
        await self.notifier.broadcast("novel:updated", {"novelId": str(payload.novel_id)})
        return TaskStatus.COMPLETED

    async def _execute(self, payload: JobPayload) -> AgentResult:
        job = await self._load(payload)
        await self._checkpoint(payload.task_id)
        return await self._handlers[payload.type](job)

    async def _load(self, payload: JobPayload) -> JobContext:
        async with self.database.session() as session:
            novel = await crud.get_novel(session, payload.novel_id)
            if novel is None:
                raise NotFoundError("Novel not found")
            chapter = None
            if payload.type.chapter_scoped:
                if payload.chapter_id is None:
                    raise NotFoundError("Chapter not found")
                chapter = await crud.require_chapter(session, payload.chapter_id, novel.id)
            agent_context = await build_agent_context(session, novel, chapter=chapter)
            config = await resolve_provider_config(session, novel.user_id, self.ai_fallback)

        return JobContext(
            payload=payload,
            agent_context=agent_context,
            provider=self.provider_factory(config),
            chapter=chapter,
        )

    async def _checkpoint(self, task_id: UUID) -> None:
        status = await self.tasks.status(task_id)
        if status is None or status.terminal:
            raise TaskCancelled("Task was cancelled")

    async def _progress(self, task_id: UUID, status: TaskStatus, progress: int | None) -> None:
        data: dict[str, Any] = {"taskId": str(task_id), "status": status.value}
        if progress is not None:
            data["progress"] = progress
        await self.notifier.emit_to_task(str(task_id), "task:progress", data)

    # --- handlers ---------------------------------------------------------

    async def _outline(self, job: JobContext) -> OutlineResult:
        request = OutlineRequest(
            mode=_generation_mode(job.data.get("mode")),
            existing_outline=job.data.get("existingOutline") or "",
        )
        response = await run_agent(job.provider, OUTLINE_AGENT, job.agent_context, request)
        await self._checkpoint(job.task_id)
        async with self.database.session() as session:
            version = await outline_service.create_version(
                session,
                job.novel_id,
                response.content,
                {"taskId": str(job.task_id), **job.data},
                request.mode,
            )
        return OutlineResult(
            content=response.content,
            model=response.model,
            tokens_used=response.tokens_used,
            mode=request.mode.value,
            version=version.version,
        )

    async def _title(self, job: JobContext) -> TitlesResult:
        outline = job.data.get("outline") or await self._current_outline(job.novel_id)
        response = await run_agent(job.provider, TITLE_AGENT, job.agent_context, outline)
        return TitlesResult(
            content=response.content,
            model=response.model,
            tokens_used=response.tokens_used,
            titles=parse_titles(response.content),
        )

    async def _chapter_planning(self, job: JobContext) -> PlanningResult:
        request = PlanningRequest(
            outline=job.data.get("outline") or await self._current_outline(job.novel_id),
            additional_requirements=job.data.get("additionalRequirements") or "",
        )
        response = await run_agent(
            job.provider, CHAPTER_PLANNING_AGENT, job.agent_context, request
        )
        structure = parse_planning(response.content)
        await self._checkpoint(job.task_id)
        # All volumes and chapters land in one transaction or not at all.
        async with self.database.session() as session:
            await crud.insert_chapter_structure(session, job.novel_id, structure)
            await session.commit()
        return PlanningResult(
            content=response.content,
            model=response.model,
            tokens_used=response.tokens_used,
            volumes=structure.volumes,
        )

    async def _chapter_outline(self, job: JobContext) -> ChapterOutlineResult:
        chapter = _require(job.chapter)
        info = ChapterInfo(order=chapter.order, title=chapter.title, summary=chapter.outline or "")
        response = await run_agent(job.provider, CHAPTER_OUTLINE_AGENT, job.agent_context, info)
        await self._checkpoint(job.task_id)
        await self._update_chapter(chapter.id, outline=response.content)
        return ChapterOutlineResult(
            content=response.content, model=response.model, tokens_used=response.tokens_used
        )

    async def _chapter_detail(self, job: JobContext) -> ChapterDetailResult:
        chapter = _require(job.chapter)
        response = await run_agent(
            job.provider, CHAPTER_DETAIL_AGENT, job.agent_context, chapter.outline or ""
        )
        await self._checkpoint(job.task_id)
        await self._update_chapter(chapter.id, detail_outline=response.content)
        return ChapterDetailResult(
            content=response.content, model=response.model, tokens_used=response.tokens_used
        )

    async def _content(self, job: JobContext) -> ContentResult:
        """Stream prose to subscribers, gate it on the consistency check, then save it.

        Rejected or cancelled prose is discarded and the chapter status goes
        back to what it was before the job; any other failure marks the
        chapter failed.
        """
        chapter = _require(job.chapter)
        prior_status = chapter.status
        request = ContentRequest(
            outline=job.data.get("modifiedOutline")
            or chapter.detail_outline
            or chapter.outline
            or "",
            instructions=job.data.get("additionalInstructions"),
        )
        task_key = str(job.task_id)
        await self._update_chapter(chapter.id, status=ChapterStatus.GENERATING.value)
        try:
            stream = stream_agent(job.provider, CONTENT_AGENT, job.agent_context, request)
            async for chunk in stream:
                await self.notifier.emit_to_task(
                    task_key, "task:chunk", {"taskId": task_key, "chunk": chunk}
                )
            response = stream.response
            await self._checkpoint(job.task_id)
            await self.tasks.set_progress(job.task_id, CONTENT_WRITTEN_PROGRESS)
            await self._progress(job.task_id, TaskStatus.RUNNING, CONTENT_WRITTEN_PROGRESS)

            check = await run_agent(
                job.provider, CONSISTENCY_AGENT, job.agent_context, response.content
            )
            report = parse_consistency(check.content)
            if not report.passed:
                raise ConsistencyCheckFailed(report.issues)
            await self._checkpoint(job.task_id)

            content = response.content
            await self._update_chapter(
                chapter.id,
                content=content,
                word_count=len(content),
                status=ChapterStatus.COMPLETED.value,
            )
        except (ConsistencyCheckFailed, TaskCancelled):
            await self._update_chapter(chapter.id, status=prior_status)
            raise
        except Exception:
            cancelled = await self.tasks.status(job.task_id) == TaskStatus.CANCELLED
            failed_status = prior_status if cancelled else ChapterStatus.FAILED.value
            await self._update_chapter(chapter.id, status=failed_status)
            raise

        return ContentResult(
            content=content,
            model=response.model,
            tokens_used=response.tokens_used,
            word_count=len(content),
            consistency=report,
        )

    async def _consistency_check(self, job: JobContext) -> ConsistencyResult:
        """Review saved prose; a failing report is still a completed task."""
        chapter = _require(job.chapter)
        content = job.data.get("content") or chapter.content
        if not content:
            raise DaerError("Chapter has no content to check")
        response = await run_agent(job.provider, CONSISTENCY_AGENT, job.agent_context, content)
        report = parse_consistency(response.content)
        return ConsistencyResult(
            content=response.content,
            model=response.model,
            tokens_used=response.tokens_used,
            report=report,
        )

    # --- persistence helpers ----------------------------------------------

    async def _update_chapter(self, chapter_id: UUID, **values: Any) -> None:
        async with self.database.session() as session:
            await crud.update_chapter(session, chapter_id, **values)
            await session.commit()

    async def _current_outline(self, novel_id: UUID) -> str:
        async with self.database.session() as session:
            versions = await outline_service.list_versions(session, novel_id)
        return versions[0].content if versions else ""


def _require(chapter: ChapterSQL | None) -> ChapterSQL:
    if chapter is None:
        raise NotFoundError("Chapter not found")
    return chapter


def _generation_mode(value: Any) -> GenerationMode:
    try:
        return GenerationMode(value) if value else GenerationMode.INITIAL
    except ValueError:
        return GenerationMode.INITIAL


__all__ = ["GenerationPipeline", "JobContext", "Notifier"]
