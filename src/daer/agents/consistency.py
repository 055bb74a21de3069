# src/daer/agents/consistency.py
"""Post-generation consistency review, answered as a JSON report."""

from __future__ import annotations

import json
from typing import Any

from .base import AgentContext, Prompts, join_list, knowledge_block, section, sections, world_setting

REPORT_FORMAT = """输出格式（JSON，严禁包含 markdown 代码块，严禁包含其他说明文字，直接返回有效的 JSON 字符串）：
{
  "passed": true/false,
  "issues": ["问题1", "问题2"],
  "suggestions": ["建议1"]
}"""


class ConsistencyAgent:
    """Check prose against world rules, forbidden rules and character abilities."""

    name = "consistency_check"

    def build_prompts(self, context: AgentContext, data: Any = None) -> Prompts:
        novel = context.novel
        abilities = "\n".join(
            f"{c.name}：{json.dumps(c.abilities or [], ensure_ascii=False)}"
            for c in context.characters
        )
        system = sections(
            "你是小说一致性审核专家。检查内容是否违反设定。",
            section("世界观规则", join_list(world_setting(novel, "worldRules"), "\n")),
            section("禁忌规则", join_list(world_setting(novel, "forbiddenRules"), "\n")),
            section("人物设定", abilities),
            knowledge_block(context, "知识库参考"),
            "检查项：\n1. 是否违反世界观规则\n2. 人物能力是否超限\n3. 时间线是否错误\n4. 人物性格是否一致",
        )
        user = sections("请审核以下内容：", str(data or ""), REPORT_FORMAT)
        return Prompts(system, user)


CONSISTENCY_AGENT = ConsistencyAgent()

__all__ = ["CONSISTENCY_AGENT", "ConsistencyAgent"]
