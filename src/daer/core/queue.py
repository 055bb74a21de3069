# src/daer/core/queue.py
"""Durable, process-safe job queue backed by the ``jobs`` table.

Producers (the HTTP API) and consumers (the worker, in-process or
standalone) share jobs through the database, so queued work survives
restarts. Claiming uses ``FOR UPDATE SKIP LOCKED`` on PostgreSQL so several
workers can poll the same table without handing out a job twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update

from daer.models.sqlalchemy_models import JobSQL
from daer.models.task import JobPayload
from daer.storage.db import Database

logger = logging.getLogger(__name__)

STATUS_QUEUED = "queued"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


@dataclass(frozen=True)
class ClaimedJob:
    """A job handed to a worker; ``id`` is the ``jobs`` row id."""

    id: int
    payload: JobPayload


class JobQueue:
    def __init__(self, database: Database) -> None:
        self.database = database

    async def enqueue(self, payload: JobPayload, *, priority: int = 1) -> int:
        """Persist ``payload`` as a queued job and return its id."""
        async with self.database.session() as session:
            job = JobSQL(
                task_id=payload.task_id,
                type=payload.type.value,
                payload=payload.to_wire(),
                priority=int(priority),
                status=STATUS_QUEUED,
            )
            session.add(job)
            await session.commit()
            job_id = job.id
        logger.info(
            "queue.enqueued",
            extra={
                "job_id": job_id,
                "task_id": str(payload.task_id),
                "task_type": payload.type.value,
                "priority": priority,
            },
        )
        return job_id

    async def dequeue_batch(self, limit: int = 5) -> list[ClaimedJob]:
        """Claim up to ``limit`` queued jobs, highest priority then oldest first."""
        if limit < 1:
            return []
        async with self.database.session() as session:
            result = await session.execute(
                select(JobSQL)
                .where(JobSQL.status == STATUS_QUEUED)
                .order_by(JobSQL.priority.desc(), JobSQL.id.asc())
                .limit(limit)
                .with_for_update(skip_locked=True)
            )
            rows = list(result.scalars())
            if not rows:
                return []
            claimed: list[ClaimedJob] = []
            for row in rows:
                row.status = STATUS_IN_PROGRESS
                claimed.append(
                    ClaimedJob(id=row.id, payload=JobPayload.model_validate(row.payload))
                )
            await session.commit()
        logger.debug("queue.claimed", extra={"count": len(claimed)})
        return claimed

    async def dequeue(self) -> ClaimedJob | None:
        jobs = await self.dequeue_batch(1)
        return jobs[0] if jobs else None

    async def _finish(self, job_id: int, status: str, error: str | None = None) -> None:
        async with self.database.session() as session:
            await session.execute(
                update(JobSQL)
                .where(JobSQL.id == job_id)
                .values(status=status, error=error)
            )
            await session.commit()

    async def mark_complete(self, job_id: int) -> None:
        await self._finish(job_id, STATUS_COMPLETED)

    async def mark_failed(self, job_id: int, error: str) -> None:
        await self._finish(job_id, STATUS_FAILED, error)

    async def cancel(self, task_id: UUID) -> int:
        """Withdraw the task's not-yet-claimed jobs; returns how many."""
        async with self.database.session() as session:
            result = await session.execute(
                update(JobSQL)
                .where(JobSQL.task_id == task_id, JobSQL.status == STATUS_QUEUED)
                .values(status=STATUS_CANCELLED)
            )
            await session.commit()
        return int(result.rowcount or 0)

    async def list_queued(self) -> list[JobPayload]:
        async with self.database.session() as session:
            result = await session.execute(
                select(JobSQL.payload)
                .where(JobSQL.status == STATUS_QUEUED)
                .order_by(JobSQL.priority.desc(), JobSQL.id.asc())
            )
            return [JobPayload.model_validate(p) for p in result.scalars()]


__all__ = [
    "STATUS_CANCELLED",
    "STATUS_COMPLETED",
    "STATUS_FAILED",
    "STATUS_IN_PROGRESS",
    "STATUS_QUEUED",
    "ClaimedJob",
    "JobQueue",
]
