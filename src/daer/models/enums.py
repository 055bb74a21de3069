# src/daer/models/enums.py
"""Enumerations stored as plain strings in the database."""

from __future__ import annotations

from enum import StrEnum


class NovelStatus(StrEnum):
    DRAFT = "draft"
    GENERATING = "generating"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ChapterStatus(StrEnum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskType(StrEnum):
    OUTLINE = "outline"
    TITLE = "title"
    CHAPTER_PLANNING = "chapter_planning"
    CHAPTER_OUTLINE = "chapter_outline"
    CHAPTER_DETAIL = "chapter_detail"
    CONTENT = "content"
    CONSISTENCY_CHECK = "consistency_check"

    @property
    def chapter_scoped(self) -> bool:
        return self in _CHAPTER_SCOPED


_CHAPTER_SCOPED = frozenset(
    {
        TaskType.CHAPTER_OUTLINE,
        TaskType.CHAPTER_DETAIL,
        TaskType.CONTENT,
        TaskType.CONSISTENCY_CHECK,
    }
)


class TaskStatus(StrEnum):
    """Lifecycle of a task record.

    ``queued -> running -> completed | failed``; ``cancelled`` is reachable
    from ``queued`` or ``running`` only. Terminal states never reopen.
    """

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class GenerationMode(StrEnum):
    INITIAL = "initial"
    EXPAND = "expand"
    ADJUST_PACE_FAST = "adjust_pace_fast"
    ADJUST_PACE_SLOW = "adjust_pace_slow"
    STRENGTHEN_CONFLICT = "strengthen_conflict"
    PRESERVE_CHARACTERS = "preserve_characters"
    MANUAL = "manual"
    ROLLBACK = "rollback"


class ProviderName(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    DEEPSEEK = "deepseek"


__all__ = [
    "ChapterStatus",
    "GenerationMode",
    "NovelStatus",
    "ProviderName",
    "TaskStatus",
    "TaskType",
]
