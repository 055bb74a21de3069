# src/daer/config/__init__.py
"""Configuration package for Daer."""

from .config import (
    AIFallbackConfig,
    DaerConfig,
    DatabaseConfig,
    SystemConfig,
    WorkerConfig,
    get_config,
)

__all__ = [
    "AIFallbackConfig",
    "DaerConfig",
    "DatabaseConfig",
    "SystemConfig",
    "WorkerConfig",
    "get_config",
]
