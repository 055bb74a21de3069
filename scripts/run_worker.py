# scripts/run_worker.py
"""Run the generation worker as its own process.

Events go to the log only: WebSocket subscribers are attached to the API
process, so clients of a standalone worker follow progress by polling tasks.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import Any

from daer.bootstrap import bootstrap
from daer.config import get_config
from daer.core.logging import get_logger, init_logging
from daer.core.pipeline import GenerationPipeline
from daer.core.queue import JobQueue
from daer.core.worker import TaskWorker
from daer.storage.db import Database

logger = get_logger(__name__)


class LogNotifier:
    async def emit_to_task(self, task_id: str, event: str, data: dict[str, Any]) -> None:
        if event != "task:chunk":
            logger.info("%s %s", event, task_id)

    async def broadcast(self, event: str, data: dict[str, Any]) -> None:
        logger.debug("%s %s", event, data)


async def run_worker() -> None:
    config = get_config()
    database = Database(config.database.url, echo=config.database.database_echo)
    await bootstrap(database, config)
    pipeline = GenerationPipeline(database, LogNotifier(), ai_fallback=config.ai)
    worker = TaskWorker(
        JobQueue(database),
        pipeline,
        concurrency=config.worker.queue_workers,
        idle_seconds=config.worker.worker_idle,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    await worker.start()
    try:
        await stop.wait()
    finally:
        await worker.stop()
        await database.dispose()


if __name__ == "__main__":  # pragma: no cover - CLI execution
    init_logging()
    asyncio.run(run_worker())
