# src/daer/web/main.py
"""FastAPI application factory and service wiring."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from daer import __version__
from daer.bootstrap import bootstrap
from daer.config import DaerConfig, get_config
from daer.core.llm import ProviderFactory, create_provider
from daer.core.locks import ChapterLocks
from daer.core.logging import get_logger
from daer.core.pipeline import GenerationPipeline
from daer.core.queue import JobQueue
from daer.core.worker import TaskWorker
from daer.services.tasks import TaskSubmitter
from daer.storage.db import Database
from daer.storage.tasks import TaskStore
from daer.web import routes, streaming
from daer.web.errors import install_error_handlers
from daer.web.websocket import TaskNotifier, handle_client

logger = get_logger(__name__)


def create_app(
    config: DaerConfig | None = None,
    *,
    database: Database | None = None,
    provider_factory: ProviderFactory | None = None,
) -> FastAPI:
    """Build the API.

    ``database`` and ``provider_factory`` are adopted as-is when given; an
    adopted database is left open at shutdown for its owner to dispose.
    """
    cfg = config or get_config()
    factory = provider_factory or create_provider

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db = database or Database(cfg.database.url, echo=cfg.database.database_echo)
        notifier = TaskNotifier()
        queue = JobQueue(db)
        tasks = TaskStore(db)
        pipeline = GenerationPipeline(
            db,
            notifier,
            provider_factory=factory,
            ai_fallback=cfg.ai,
            locks=ChapterLocks(db),
        )
        worker = TaskWorker(
            queue,
            pipeline,
            concurrency=cfg.worker.queue_workers,
            idle_seconds=cfg.worker.worker_idle,
        )

        app.state.config = cfg
        app.state.database = db
        app.state.notifier = notifier
        app.state.queue = queue
        app.state.tasks = tasks
        app.state.submitter = TaskSubmitter(tasks, queue)
        app.state.pipeline = pipeline
        app.state.worker = worker
        app.state.provider_factory = factory
        app.state.bootstrap = await bootstrap(db, cfg)

        if cfg.worker.worker_enabled:
            await worker.start()
        logger.info(
            "api.started",
            extra={"version": __version__, "worker": cfg.worker.worker_enabled},
        )
        try:
            yield
        finally:
            await worker.stop()
            if database is None:
                await db.dispose()
            logger.info("api.stopped")

    app = FastAPI(
        title="Daer Novel API",
        description="Long-form fiction authoring backend with queued LLM generation",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.system.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)
    app.include_router(routes.router)
    app.include_router(streaming.router)

    @app.get("/health")
    async def health_check():
        status = getattr(app.state, "bootstrap", None)
        return {
            "status": "healthy",
            "version": __version__,
            "ready": bool(status and status.ready),
            "bootstrap": status.as_dict() if status else None,
            "worker": app.state.worker.running if hasattr(app.state, "worker") else False,
        }

    @app.websocket("/ws")
    async def task_events(websocket: WebSocket) -> None:
        await handle_client(app.state.notifier, websocket)

    return app


__all__ = ["create_app"]
