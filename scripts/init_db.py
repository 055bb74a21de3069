# scripts/init_db.py
"""Create the database schema and seed the local user when auth is disabled."""

from __future__ import annotations

from daer.bootstrap import bootstrap
from daer.config import get_config
from daer.core.logging import get_logger, init_logging
from daer.storage.db import Database

logger = get_logger(__name__)


async def init_db() -> None:
    config = get_config()
    database = Database(config.database.url, echo=config.database.database_echo)
    logger.info("Creating tables on %s", database)
    try:
        await bootstrap(database, config)
        logger.info("Database initialized")
    finally:
        await database.dispose()


if __name__ == "__main__":  # pragma: no cover - CLI execution
    import asyncio

    init_logging()
    asyncio.run(init_db())
