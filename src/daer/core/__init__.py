# src/daer/core/__init__.py
"""Core utilities for Daer."""

from .env import load_env
from .errors import DaerError
from .logging import get_logger, init_logging

__all__ = [
    "DaerError",
    "get_logger",
    "init_logging",
    "load_env",
]
