# src/daer/core/worker.py
"""Background worker that drains the job queue through the pipeline."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from daer.core.pipeline import GenerationPipeline
from daer.core.queue import ClaimedJob, JobQueue

logger = logging.getLogger(__name__)


class TaskWorker:
    """Poll the queue and run claimed jobs with bounded concurrency.

    At most ``concurrency`` jobs execute at once; jobs are independent of each
    other apart from the per-chapter lock the pipeline holds.
    """

    def __init__(
        self,
        queue: JobQueue,
        pipeline: GenerationPipeline,
        *,
        concurrency: int = 3,
        idle_seconds: float = 0.5,
    ) -> None:
        self.queue = queue
        self.pipeline = pipeline
        self.concurrency = max(1, concurrency)
        self.idle_seconds = idle_seconds
        self._semaphore = asyncio.Semaphore(self.concurrency)
        self._in_flight: set[asyncio.Task[None]] = set()
        self._loop_task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self.processed = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._loop_task = asyncio.create_task(self._poll(), name="daer-worker")
        logger.info("worker.started", extra={"concurrency": self.concurrency})

    async def stop(self) -> None:
        """Stop polling and wait for in-flight jobs to finish."""
        self._stopping.set()
        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        logger.info("worker.stopped", extra={"processed": self.processed})

    async def run_once(self) -> int:
        """Claim one batch and process it to completion; returns the batch size."""
        jobs = await self.queue.dequeue_batch(self.concurrency)
        if jobs:
            await asyncio.gather(*(self._process(job) for job in jobs))
        return len(jobs)

    async def _poll(self) -> None:
        while not self._stopping.is_set():
            free = self.concurrency - len(self._in_flight)
            jobs: list[ClaimedJob] = []
            if free > 0:
                try:
                    jobs = await self.queue.dequeue_batch(free)
                except Exception:
                    logger.exception("worker.dequeue_failed")
            for job in jobs:
                task = asyncio.create_task(self._process(job))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
            if not jobs:
                await asyncio.sleep(self.idle_seconds)

    async def _process(self, job: ClaimedJob) -> None:
        async with self._semaphore:
            extra = {
                "job_id": job.id,
                "task_id": str(job.payload.task_id),
                "task_type": job.payload.type.value,
            }
            try:
                status = await self.pipeline.run(job.payload)
            except Exception as exc:
                logger.exception("worker.job_crashed", extra=extra)
                message = str(exc) or type(exc).__name__
                await self._fail_task(job, message)
                await self.queue.mark_failed(job.id, message)
                return
            finally:
                self.processed += 1
            logger.debug("worker.job_done", extra={**extra, "status": str(status)})
            await self.queue.mark_complete(job.id)

    async def _fail_task(self, job: ClaimedJob, message: str) -> None:
        """Best-effort: keep the task from staying open after a crash."""
        try:
            await self.pipeline.tasks.fail(job.payload.task_id, message)
        except Exception:
            logger.exception(
                "worker.task_fail_failed", extra={"task_id": str(job.payload.task_id)}
            )


__all__ = ["TaskWorker"]
