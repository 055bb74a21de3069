# src/daer/agents/chapter.py
"""Chapter-structure agents: planning, chapter outline and scene detail."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from .base import (
    AgentContext,
    Prompts,
    character_lines,
    knowledge_block,
    section,
    sections,
    tail,
)

DEFAULT_TARGET_WORDS = 100000
DEFAULT_MIN_CHAPTER_WORDS = 3000
OUTLINE_CONTEXT_CHARS = 500


def estimated_chapter_count(target_words: int | None, min_chapter_words: int | None) -> int:
    """ceil(target words / minimum chapter words), with the novel defaults."""
    target = target_words or DEFAULT_TARGET_WORDS
    per_chapter = min_chapter_words or DEFAULT_MIN_CHAPTER_WORDS
    return math.ceil(target / per_chapter)


@dataclass
class PlanningRequest:
    outline: str = ""
    additional_requirements: str = ""


@dataclass
class ChapterInfo:
    order: int | None = None
    title: str = ""
    summary: str = ""


PLANNING_FORMAT = """输出格式（JSON，严禁包含 markdown 代码块，严禁包含其他说明文字，直接返回有效的 JSON 字符串）：
{
  "volumes": [
    {
      "title": "卷名",
      "chapters": [
        {"title": "章节标题", "summary": "章节概要"}
      ]
    }
  ]
}"""


class ChapterPlanningAgent:
    """Split the outline into volumes and chapters, answered as JSON."""

    name = "chapter_planning"

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        novel = context.novel
        request = _planning_request(data)
        target = novel.target_words or DEFAULT_TARGET_WORDS
        per_chapter = novel.min_chapter_words or DEFAULT_MIN_CHAPTER_WORDS
        estimate = estimated_chapter_count(target, per_chapter)
        system = sections(
            "你是小说章节结构规划师。根据大纲将小说分卷分章。",
            f"目标字数：{target}字\n每章最少字数：{per_chapter}字\n"
            f"预计章节数：约{estimate}章（请尽量接近这个数量）",
            "要求：\n1. 合理分卷（可选）\n2. 每章有明确主题\n3. 章节标题吸引人\n"
            "4. 节奏把控合理\n5. 严格控制章节数量，确保总字数达标",
        )
        user = sections(
            f"基于《{novel.title or '本书'}》的以下大纲，生成章节结构：",
            request.outline,
            section("额外要求", request.additional_requirements),
            PLANNING_FORMAT,
        )
        return Prompts(system, user)


def _planning_request(data: Any) -> PlanningRequest:
    if isinstance(data, PlanningRequest):
        return data
    if isinstance(data, str):
        return PlanningRequest(outline=data)
    data = data or {}
    return PlanningRequest(
        outline=data.get("outline") or "",
        additional_requirements=data.get("additionalRequirements")
        or data.get("additional_requirements")
        or "",
    )


class ChapterOutlineAgent:
    """Expand one chapter's summary into a 300-500 character plot outline."""

    name = "chapter_outline"

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        novel = context.novel
        info = data if isinstance(data, ChapterInfo) else ChapterInfo(**(data or {}))
        system = sections(
            "你是章节大纲撰写专家。为单个章节生成详细的剧情大纲。",
            f"小说背景：{novel.background}" if novel.background else "",
            section("人物信息", character_lines(context.characters)),
            knowledge_block(context),
            "要求：\n1. 情节紧凑，有冲突\n2. 符合人物性格\n3. 遵守世界观规则\n4. 为下一章留悬念",
        )
        heading = f"第{info.order}章" if info.order else "本章"
        user = sections(
            f"生成《{novel.title or '本书'}》{heading}《{info.title}》的详细大纲。",
            f"章节概要：{info.summary}" if info.summary else "",
            section("前文回顾", tail(context.previous_content, OUTLINE_CONTEXT_CHARS)),
            "请输出详细的章节大纲（300-500字）。",
        )
        return Prompts(system, user)


class ChapterDetailAgent:
    """Break a chapter outline into concrete scenes."""

    name = "chapter_detail"

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        novel = context.novel
        outline = data if isinstance(data, str) else (data or {}).get("outline", "")
        system = sections(
            "你是章节细纲设计师。将章节大纲拆分为具体的场景和情节点。",
            knowledge_block(context),
            "要求：\n1. 每个场景有明确的目标\n2. 标注关键对话和动作\n3. 情绪节奏起伏\n"
            f"4. 字数分配合理（目标{novel.min_chapter_words or DEFAULT_MIN_CHAPTER_WORDS}字）",
        )
        user = sections(
            f"基于《{novel.title or '本书'}》的以下章节大纲，生成详细的场景细纲：",
            outline,
            "输出格式：\n场景1：[地点] [人物] [事件]\n场景2：...\n（至少3-5个场景）",
        )
        return Prompts(system, user)


CHAPTER_PLANNING_AGENT = ChapterPlanningAgent()
CHAPTER_OUTLINE_AGENT = ChapterOutlineAgent()
CHAPTER_DETAIL_AGENT = ChapterDetailAgent()

__all__ = [
    "CHAPTER_DETAIL_AGENT",
    "CHAPTER_OUTLINE_AGENT",
    "CHAPTER_PLANNING_AGENT",
    "ChapterDetailAgent",
    "ChapterInfo",
    "ChapterOutlineAgent",
    "ChapterPlanningAgent",
    "PlanningRequest",
    "estimated_chapter_count",
]
