# src/daer/agents/base.py
"""Prompt-builder interface and the shared agent executors.

An agent is a value implementing :class:`PromptBuilder`: a pure function
from the domain context and a task-specific input to a system/user prompt
pair. :func:`run_agent` and :func:`stream_agent` turn that pair into one
provider call. Agents never raise on missing optional context; the
corresponding prompt section is simply left out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol

from daer.core.llm import ChatMessage, ChatProvider, ChatResponse, ChatStream

logger = logging.getLogger(__name__)

LIST_SEP = "、"


@dataclass
class AgentContext:
    """Domain state an agent may draw on.

    ``novel`` and ``characters`` are ORM rows (or any objects exposing the
    same attributes). ``knowledge_base`` holds flattened documents, one
    string each.
    """

    novel: Any
    characters: list[Any] = field(default_factory=list)
    knowledge_base: list[str] = field(default_factory=list)
    previous_content: str | None = None


class Prompts(NamedTuple):
    system: str
    user: str

    def messages(self) -> list[ChatMessage]:
        return [
            ChatMessage(role="system", content=self.system),
            ChatMessage(role="user", content=self.user),
        ]


class PromptBuilder(Protocol):
    name: str

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts: ...


async def run_agent(
    provider: ChatProvider,
    agent: PromptBuilder,
    context: AgentContext,
    data: Any = None,
) -> ChatResponse:
    """Build ``agent``'s prompts and make one non-streaming call."""
    prompts = agent.build_prompts(context, data)
    logger.debug("agent.run", extra={"agent": agent.name})
    return await provider.chat(prompts.messages())


def stream_agent(
    provider: ChatProvider,
    agent: PromptBuilder,
    context: AgentContext,
    data: Any = None,
) -> ChatStream:
    """Build ``agent``'s prompts and open a streaming call."""
    prompts = agent.build_prompts(context, data)
    logger.debug("agent.stream", extra={"agent": agent.name})
    return provider.stream_chat(prompts.messages())


# --- prompt helpers -------------------------------------------------------


def join_list(values: Any, sep: str = LIST_SEP) -> str:
    if not values:
        return ""
    return sep.join(str(v) for v in values if v)


def sections(*parts: str | None) -> str:
    """Join non-empty prompt parts with blank lines."""
    return "\n\n".join(p.strip("\n") for p in parts if p and p.strip())


def section(title: str, body: str | None) -> str:
    """``title`` followed by ``body``; empty when there is no body."""
    if not body or not body.strip():
        return ""
    return f"{title}：\n{body}"


def world_setting(novel: Any, key: str) -> Any:
    settings = getattr(novel, "world_settings", None) or {}
    snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in key)
    value = settings.get(key)
    return value if value is not None else settings.get(snake)


def world_settings_block(novel: Any) -> str:
    """Render the novel's world settings; empty when none are set."""
    if not getattr(novel, "world_settings", None):
        return ""
    lines = []
    time_background = world_setting(novel, "timeBackground")
    if time_background:
        lines.append(f"- 时间背景：{time_background}")
    rules = join_list(world_setting(novel, "worldRules"), "；")
    if rules:
        lines.append(f"- 世界规则：{rules}")
    power = world_setting(novel, "powerSystem")
    if power:
        lines.append(f"- 力量体系：{power}")
    forbidden = join_list(world_setting(novel, "forbiddenRules"), "；")
    if forbidden:
        lines.append(f"- 禁忌规则：{forbidden}")
    return section("世界观设定", "\n".join(lines))


def character_lines(characters: list[Any], *, with_state: bool = False) -> str:
    lines = []
    for c in characters or []:
        traits = join_list(getattr(c, "personality", None))
        if with_state:
            line = f"- {c.name}：{traits}"
            if getattr(c, "current_state", None):
                line += f"，当前状态：{c.current_state}"
        else:
            role = f"（{c.role}）" if getattr(c, "role", None) else ""
            line = f"- {c.name}{role}：{traits}"
        lines.append(line)
    return "\n".join(lines)


def knowledge_block(context: AgentContext, title: str = "额外知识库") -> str:
    return section(title, "\n\n".join(context.knowledge_base))


def tail(text: str | None, limit: int) -> str:
    return text[-limit:] if text else ""


__all__ = [
    "AgentContext",
    "PromptBuilder",
    "Prompts",
    "character_lines",
    "join_list",
    "knowledge_block",
    "run_agent",
    "section",
    "sections",
    "stream_agent",
    "tail",
    "world_setting",
    "world_settings_block",
]
