# src/daer/agents/outline.py
"""Story-level agents: outline, title suggestions and background expansion."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from daer.models.enums import GenerationMode

from .base import (
    AgentContext,
    Prompts,
    character_lines,
    join_list,
    knowledge_block,
    section,
    sections,
    world_settings_block,
)


@dataclass
class OutlineRequest:
    mode: GenerationMode = GenerationMode.INITIAL
    existing_outline: str = ""


_MODE_INSTRUCTIONS = {
    GenerationMode.EXPAND: "基于以下现有大纲进行扩写，增加更多细节和情节点",
    GenerationMode.ADJUST_PACE_FAST: "调整以下大纲节奏，使其更加紧凑、爽快（删除拖沓情节，加快冲突爆发）",
    GenerationMode.ADJUST_PACE_SLOW: "调整以下大纲节奏，使其更加舒缓、细腻（增加铺垫和情感描写）",
    GenerationMode.STRENGTHEN_CONFLICT: "强化以下大纲的主线冲突，增加戏剧张力和主角面临的困境",
    GenerationMode.PRESERVE_CHARACTERS: "保留人物设定，重新生成大纲（保持角色性格和关系不变）",
}


def novel_profile(novel: Any, *, with_target: bool = True) -> str:
    lines = [f"小说标题：{novel.title or '未命名'}"]
    genre = join_list(novel.genre)
    if genre:
        lines.append(f"小说类型：{genre}")
    style = join_list(novel.style)
    if style:
        lines.append(f"风格标签：{style}")
    if with_target and novel.target_words:
        lines.append(f"目标字数：{novel.target_words}字")
    if novel.background:
        lines.append(f"背景设定：{novel.background}")
    return "\n".join(lines)


class OutlineAgent:
    """Whole-story outline, generated fresh or reworked in one of several modes."""

    name = "outline"

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        request = _outline_request(data)
        novel = context.novel
        system = sections(
            "你是一位资深网络小说大纲策划师。你的任务是根据小说设定生成完整的故事大纲。",
            novel_profile(novel),
            world_settings_block(novel),
            section("人物信息", character_lines(context.characters)),
            knowledge_block(context),
            "请生成一个结构完整、逻辑清晰的故事大纲，包括：\n"
            "1. 故事主线\n2. 主要冲突\n3. 关键转折点\n4. 高潮设计\n5. 结局方向",
            f"大纲应该支撑{novel.target_words}字的长篇连载。",
        )

        instruction = _MODE_INSTRUCTIONS.get(request.mode)
        if instruction and request.existing_outline.strip():
            user = f"{instruction}：\n\n{request.existing_outline}"
        else:
            user = f"请为《{novel.title or '本书'}》生成完整的小说大纲。"
        return Prompts(system, user)


def _outline_request(data: Any) -> OutlineRequest:
    if isinstance(data, OutlineRequest):
        return data
    if isinstance(data, str):
        return OutlineRequest(mode=_mode(data))
    if isinstance(data, dict):
        return OutlineRequest(
            mode=_mode(data.get("mode")),
            existing_outline=data.get("existingOutline")
            or data.get("existing_outline")
            or "",
        )
    return OutlineRequest()


def _mode(value: Any) -> GenerationMode:
    try:
        return GenerationMode(value) if value else GenerationMode.INITIAL
    except ValueError:
        return GenerationMode.INITIAL


class TitleAgent:
    """Five candidate titles, one per line."""

    name = "title"
    count = 5

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        novel = context.novel
        outline = data if isinstance(data, str) else (data or {}).get("outline", "")
        system = sections(
            "你是一位网络小说命名专家。根据小说大纲和设定，生成吸引人的书名。",
            "\n".join(
                line
                for line in (
                    f"小说类型：{join_list(novel.genre)}" if novel.genre else "",
                    f"风格：{join_list(novel.style)}" if novel.style else "",
                )
                if line
            ),
            "要求：\n1. 书名要吸引目标读者\n2. 体现小说核心卖点\n"
            "3. 符合网文命名习惯\n4. 朗朗上口，易于传播",
        )
        user = sections(
            f"基于《{novel.title or '本书'}》的以下大纲，生成{self.count}个候选书名：",
            outline,
            f"请直接输出{self.count}个书名，每行一个。",
        )
        return Prompts(system, user)


def parse_titles(text: str, limit: int = TitleAgent.count) -> list[str]:
    """Split a title response into clean candidates."""
    titles = []
    for line in text.splitlines():
        line = line.strip().lstrip("-*•").strip()
        # Drop list numbering such as "1." or "2、".
        head, _, rest = line.partition(".")
        if not rest:
            head, _, rest = line.partition("、")
        if rest and head.strip().isdigit():
            line = rest.strip()
        line = line.strip("《》\"“”")
        if line:
            titles.append(line)
    return titles[:limit]


class BackgroundAgent:
    """Expand the novel's background text into a richer setting description."""

    name = "background"

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        novel = context.novel
        instructions = data if isinstance(data, str) else (data or {}).get("instructions")
        system = sections(
            "你是一位网络小说世界观设计师。你的任务是在不改变既有设定的前提下，扩展和丰富小说的背景设定。",
            novel_profile(novel, with_target=False),
            world_settings_block(novel),
            section("人物信息", character_lines(context.characters)),
            knowledge_block(context),
            "要求：\n1. 与已有设定保持一致\n2. 补充历史、地理、势力等细节\n"
            "3. 为主线冲突提供土壤\n4. 直接输出扩展后的背景设定",
        )
        user = sections(
            f"请扩展《{novel.title or '本书'}》的背景设定。",
            section("当前背景", novel.background),
            section("额外要求", instructions),
        )
        return Prompts(system, user)


OUTLINE_AGENT = OutlineAgent()
TITLE_AGENT = TitleAgent()
BACKGROUND_AGENT = BackgroundAgent()

__all__ = [
    "BACKGROUND_AGENT",
    "OUTLINE_AGENT",
    "TITLE_AGENT",
    "BackgroundAgent",
    "OutlineAgent",
    "OutlineRequest",
    "TitleAgent",
    "novel_profile",
    "parse_titles",
]
