# src/daer/storage/tasks.py
"""Durable task records and their status transitions."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update

from daer.models.enums import TaskStatus, TaskType
from daer.models.sqlalchemy_models import TaskSQL

from .db import Database

logger = logging.getLogger(__name__)

_OPEN = (TaskStatus.QUEUED.value, TaskStatus.RUNNING.value)


class TaskStore:
    """Create, transition and read :class:`TaskSQL` rows.

    Every transition is one ``UPDATE`` committed immediately. Transitions
    out of an open state are guarded by a ``WHERE status`` clause so a task
    never leaves a terminal state; the boolean return value says whether the
    row actually moved.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def create(
        self, novel_id: UUID, task_type: TaskType, chapter_id: UUID | None = None
    ) -> TaskSQL:
        async with self.database.session() as session:
            task = TaskSQL(
                novel_id=novel_id,
                chapter_id=chapter_id,
                type=TaskType(task_type).value,
                status=TaskStatus.QUEUED.value,
                progress=0,
            )
            session.add(task)
            await session.commit()
            await session.refresh(task)
        logger.info(
            "task.created",
            extra={"task_id": str(task.id), "task_type": task.type},
        )
        return task

    async def get(self, task_id: UUID) -> TaskSQL | None:
        async with self.database.session() as session:
            return await session.get(TaskSQL, task_id)

    async def list_by_novel(self, novel_id: UUID) -> list[TaskSQL]:
        async with self.database.session() as session:
            result = await session.execute(
                select(TaskSQL)
                .where(TaskSQL.novel_id == novel_id)
                .order_by(TaskSQL.created_at.desc())
            )
            return list(result.scalars())

    async def transition(
        self,
        task_id: UUID,
        status: TaskStatus,
        *,
        progress: int | None = None,
        result: dict[str, Any] | None = None,
        error: str | None = None,
        metadata: dict[str, Any] | None = None,
        only_from: tuple[str, ...] | None = None,
    ) -> bool:
        """Move ``task_id`` to ``status``.

        When ``only_from`` is given the update applies only if the current
        status is one of those values.
        """
        values: dict[str, Any] = {"status": TaskStatus(status).value}
        if progress is not None:
            values["progress"] = max(0, min(100, progress))
        if result is not None:
            values["result"] = result
        if error is not None:
            values["error"] = error
        if metadata is not None:
            values["task_metadata"] = metadata

        stmt = update(TaskSQL).where(TaskSQL.id == task_id).values(**values)
        if only_from is not None:
            stmt = stmt.where(TaskSQL.status.in_(only_from))
        async with self.database.session() as session:
            res = await session.execute(stmt)
            await session.commit()
        return bool(res.rowcount)

    async def start(self, task_id: UUID) -> bool:
        """``queued -> running``; ``False`` when the task is not queued."""
        return await self.transition(
            task_id,
            TaskStatus.RUNNING,
            progress=0,
            only_from=(TaskStatus.QUEUED.value,),
        )

    async def set_progress(self, task_id: UUID, progress: int) -> None:
        async with self.database.session() as session:
            await session.execute(
                update(TaskSQL)
                .where(TaskSQL.id == task_id, TaskSQL.status == TaskStatus.RUNNING.value)
                .values(progress=max(0, min(100, progress)))
            )
            await session.commit()

    async def complete(
        self, task_id: UUID, result: dict[str, Any], metadata: dict[str, Any]
    ) -> bool:
        return await self.transition(
            task_id,
            TaskStatus.COMPLETED,
            progress=100,
            result=result,
            metadata=metadata,
            only_from=_OPEN,
        )

    async def fail(self, task_id: UUID, error: str) -> bool:
        return await self.transition(
            task_id, TaskStatus.FAILED, error=error, only_from=_OPEN
        )

    async def cancel(self, task_id: UUID) -> bool:
        """Cancel a queued or running task; terminal tasks are left alone."""
        moved = await self.transition(task_id, TaskStatus.CANCELLED, only_from=_OPEN)
        if moved:
            logger.info("task.cancelled", extra={"task_id": str(task_id)})
        return moved

    async def status(self, task_id: UUID) -> TaskStatus | None:
        async with self.database.session() as session:
            value = await session.scalar(
                select(TaskSQL.status).where(TaskSQL.id == task_id)
            )
        return TaskStatus(value) if value is not None else None


__all__ = ["TaskStore"]
