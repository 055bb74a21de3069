# src/daer/agents/__init__.py
"""Prompt builders for every generation purpose and the shared executors."""

from daer.models.enums import TaskType

from .base import AgentContext, PromptBuilder, Prompts, run_agent, stream_agent
from .chapter import (
    CHAPTER_DETAIL_AGENT,
    CHAPTER_OUTLINE_AGENT,
    CHAPTER_PLANNING_AGENT,
    ChapterInfo,
    PlanningRequest,
    estimated_chapter_count,
)
from .consistency import CONSISTENCY_AGENT
from .outline import (
    BACKGROUND_AGENT,
    OUTLINE_AGENT,
    TITLE_AGENT,
    OutlineRequest,
    parse_titles,
)
from .writer import ASSIST_AGENT, CONTENT_AGENT, ChatRequest, ContentRequest

AGENTS: dict[TaskType, PromptBuilder] = {
    TaskType.OUTLINE: OUTLINE_AGENT,
    TaskType.TITLE: TITLE_AGENT,
    TaskType.CHAPTER_PLANNING: CHAPTER_PLANNING_AGENT,
    TaskType.CHAPTER_OUTLINE: CHAPTER_OUTLINE_AGENT,
    TaskType.CHAPTER_DETAIL: CHAPTER_DETAIL_AGENT,
    TaskType.CONTENT: CONTENT_AGENT,
    TaskType.CONSISTENCY_CHECK: CONSISTENCY_AGENT,
}

__all__ = [
    "AGENTS",
    "ASSIST_AGENT",
    "BACKGROUND_AGENT",
    "CHAPTER_DETAIL_AGENT",
    "CHAPTER_OUTLINE_AGENT",
    "CHAPTER_PLANNING_AGENT",
    "CONSISTENCY_AGENT",
    "CONTENT_AGENT",
    "OUTLINE_AGENT",
    "TITLE_AGENT",
    "AgentContext",
    "ChapterInfo",
    "ChatRequest",
    "ContentRequest",
    "OutlineRequest",
    "PlanningRequest",
    "PromptBuilder",
    "Prompts",
    "estimated_chapter_count",
    "parse_titles",
    "run_agent",
    "stream_agent",
]
