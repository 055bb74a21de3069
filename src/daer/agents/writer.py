# src/daer/agents/writer.py
"""Prose agents: chapter content and the free-form writing assistant."""

from __future__ import annotations

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
    world_settings_block,
)
from .chapter import DEFAULT_MIN_CHAPTER_WORDS
from .outline import novel_profile

CONTENT_CONTEXT_CHARS = 800
ASSIST_CONTEXT_CHARS = 2000


@dataclass
class ContentRequest:
    outline: str = ""
    instructions: str | None = None


@dataclass
class ChatRequest:
    message: str
    previous_content: str | None = None


class ContentAgent:
    """Write a chapter's prose from its detail outline. Used in streaming mode."""

    name = "content"

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        novel = context.novel
        request = data if isinstance(data, ContentRequest) else ContentRequest(
            outline=data if isinstance(data, str) else ""
        )
        min_words = novel.min_chapter_words or DEFAULT_MIN_CHAPTER_WORDS
        style = "、".join(novel.style or [])
        system = sections(
            "你是网络小说作家。根据细纲生成精彩的章节正文。",
            f"小说风格：{style}" if style else "",
            section("人物信息", character_lines(context.characters, with_state=True)),
            knowledge_block(context),
            "写作要求：\n1. 文笔流畅，代入感强\n2. 对话生动，符合人物性格\n3. 场景描写细腻\n"
            f"4. 节奏紧凑，不拖沓\n5. 字数：{min_words}字以上",
            "禁止：\n- 违反世界观规则\n- 人物OOC（性格崩坏）\n- 逻辑矛盾",
        )
        user = sections(
            f"根据《{novel.title or '本书'}》的以下章节细纲，生成章节正文：",
            request.outline,
            section("额外写作要求（必须严格遵守）", request.instructions),
            section("前文衔接", tail(context.previous_content, CONTENT_CONTEXT_CHARS)),
            "请开始创作，直接输出正文内容。",
        )
        return Prompts(system, user)


class AssistAgent:
    """Answer the author's questions against the novel and the current draft."""

    name = "assist"

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        request = data if isinstance(data, ChatRequest) else ChatRequest(message=str(data or ""))
        novel = context.novel
        system = sections(
            "你是一位专业的网文写作助手。你的任务是辅助作者进行创作，回答他们的问题，或者根据上下文提供写作建议。",
            novel_profile(novel, with_target=False),
            world_settings_block(novel),
            section("人物信息", character_lines(context.characters)),
            "请根据以上设定和作者提供的小说正文片段（如果有），回答作者的问题。\n"
            "回答要求：\n1. 具有启发性，能激发作者灵感\n2. 贴合小说设定和风格\n"
            "3. 简洁明了，直接切入重点\n4. 如果作者要求生成片段，请确保风格统一",
        )
        draft = tail(request.previous_content or context.previous_content, ASSIST_CONTEXT_CHARS)
        user = f"当前正文片段（上文）：\n{draft or '（无）'}\n\n作者的问题/指令：\n{request.message}"
        return Prompts(system, user)


CONTENT_AGENT = ContentAgent()
ASSIST_AGENT = AssistAgent()

__all__ = [
    "ASSIST_AGENT",
    "CONTENT_AGENT",
    "AssistAgent",
    "ChatRequest",
    "ContentAgent",
    "ContentRequest",
]
