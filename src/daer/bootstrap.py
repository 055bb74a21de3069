# src/daer/bootstrap.py
"""Startup sequence: wait for the database, create tables, seed the local user.

Used by the API lifespan, the standalone worker and ``scripts/init_db.py``.
Each run returns a :class:`BootstrapStatus` recording the steps it took so
``/health`` can report readiness.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any

from daer.config import DaerConfig
from daer.core.logging import get_logger
from daer.storage import crud
from daer.storage.db import Database, wait_for_database

logger = get_logger(__name__)


class BootstrapError(RuntimeError):
    """Bootstrap failed unexpectedly."""


@dataclass
class BootstrapStatus:
    started_at: float
    finished_at: float | None = None
    db_ready: bool = False
    schema_ready: bool = False
    steps: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    @property
    def ready(self) -> bool:
        return self.db_ready and self.schema_ready and self.error is None

    def as_dict(self) -> dict[str, Any]:
        return {**asdict(self), "ready": self.ready}


async def bootstrap(database: Database, config: DaerConfig) -> BootstrapStatus:
    """Bring the database to a usable state; raises :class:`BootstrapError`."""
    status = BootstrapStatus(started_at=time.time())
    try:
        await wait_for_database(
            database,
            attempts=config.worker.db_wait_attempts,
            wait_seconds=config.worker.db_wait_seconds,
        )
        status.db_ready = True
        status.steps.append({"step": "db_wait", "ok": True})

        await database.create_all()
        status.schema_ready = True
        status.steps.append({"step": "create_all", "ok": True})

        if config.system.disable_auth:
            async with database.session() as session:
                await crud.ensure_user(session, config.system.default_user_id)
                await session.commit()
            status.steps.append({"step": "default_user", "ok": True})
    except Exception as exc:
        status.error = str(exc)
        status.finished_at = time.time()
        logger.exception("bootstrap.failed")
        raise BootstrapError(f"Bootstrap failed: {exc}") from exc

    status.finished_at = time.time()
    logger.info(
        "bootstrap.complete",
        extra={"duration_s": round(status.finished_at - status.started_at, 3)},
    )
    return status


__all__ = ["BootstrapError", "BootstrapStatus", "bootstrap"]
