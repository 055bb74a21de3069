# src/daer/__main__.py
"""Serve the API with uvicorn: ``python -m daer``."""

from __future__ import annotations

import uvicorn

from daer.config import get_config
from daer.core.logging import init_logging
from daer.web.main import create_app


def main() -> None:
    config = get_config()
    init_logging(level=config.system.log_level)
    uvicorn.run(
        create_app(config),
        host="0.0.0.0",
        port=config.system.backend_port,
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover - CLI execution
    main()
