# src/daer/storage/__init__.py
"""Persistence services: database lifecycle, queries and the task store."""

from .db import Database, advisory_lock, wait_for_database
from .tasks import TaskStore

__all__ = ["Database", "TaskStore", "advisory_lock", "wait_for_database"]
