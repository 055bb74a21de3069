# src/daer/services/tasks.py
"""Task submission: a task row and its job are created as one step."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from daer.core.errors import AppError
from daer.core.queue import JobQueue
from daer.models.enums import TaskType
from daer.models.sqlalchemy_models import TaskSQL
from daer.models.task import JobPayload
from daer.storage.tasks import TaskStore

logger = logging.getLogger(__name__)


class TaskSubmitter:
    """Create a queued task and enqueue exactly one job for it.

    If the enqueue fails after the task row exists, the task is marked
    failed so it is never left waiting at ``queued`` without a job.
    """

    def __init__(self, tasks: TaskStore, queue: JobQueue) -> None:
        self.tasks = tasks
        self.queue = queue

    async def submit(
        self,
        novel_id: UUID,
        task_type: TaskType,
        *,
        chapter_id: UUID | None = None,
        data: dict[str, Any] | None = None,
        priority: int = 1,
    ) -> TaskSQL:
        task = await self.tasks.create(novel_id, task_type, chapter_id)
        payload = JobPayload(
            task_id=task.id,
            novel_id=novel_id,
            chapter_id=chapter_id,
            type=task_type,
            input=data or {},
        )
        try:
            await self.queue.enqueue(payload, priority=priority)
        except Exception as exc:
            logger.exception(
                "task.enqueue_failed",
                extra={"task_id": str(task.id), "task_type": task.type},
            )
            message = f"Failed to enqueue task: {exc}"
            await self.tasks.fail(task.id, message)
            raise AppError(message, 500) from exc
        return task

    async def cancel(self, task_id: UUID) -> bool:
        """Withdraw queued jobs and mark the task cancelled if it is still open."""
        withdrawn = await self.queue.cancel(task_id)
        moved = await self.tasks.cancel(task_id)
        logger.info(
            "task.cancel",
            extra={"task_id": str(task_id), "jobs_withdrawn": withdrawn, "moved": moved},
        )
        return moved


__all__ = ["TaskSubmitter"]
