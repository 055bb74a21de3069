# src/daer/models/results.py
"""Typed agent results, one variant per task type.

Each variant carries the raw model text (``content``), the model name and
the token usage reported by the provider. Variants are discriminated by
``kind`` so a stored ``Task.result`` can be validated back into the right
class with :data:`AgentResultAdapter`.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field, TypeAdapter

from .base_model import DaerBaseModel, LenientModel


class ChapterPlan(LenientModel):
    title: str
    summary: str = ""


class VolumePlan(LenientModel):
    title: str
    chapters: list[ChapterPlan] = Field(default_factory=list)


class ChapterStructure(LenientModel):
    """Parsed chapter-planning output: ordered volumes of ordered chapters."""

    volumes: list[VolumePlan] = Field(min_length=1)


class ConsistencyReport(LenientModel):
    """Parsed consistency-check output."""

    passed: bool
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class _ResultBase(DaerBaseModel):
    content: str
    model: str = ""
    tokens_used: int | None = None


class OutlineResult(_ResultBase):
    kind: Literal["outline"] = "outline"
    mode: str = "initial"
    version: int | None = None


class TitlesResult(_ResultBase):
    kind: Literal["title"] = "title"
    titles: list[str] = Field(default_factory=list)


class PlanningResult(_ResultBase):
    kind: Literal["chapter_planning"] = "chapter_planning"
    volumes: list[VolumePlan] = Field(default_factory=list)


class ChapterOutlineResult(_ResultBase):
    kind: Literal["chapter_outline"] = "chapter_outline"


class ChapterDetailResult(_ResultBase):
    kind: Literal["chapter_detail"] = "chapter_detail"


class ContentResult(_ResultBase):
    kind: Literal["content"] = "content"
    word_count: int = 0
    consistency: ConsistencyReport | None = None


class ConsistencyResult(_ResultBase):
    kind: Literal["consistency_check"] = "consistency_check"
    report: ConsistencyReport


AgentResult = Annotated[
    OutlineResult
    | TitlesResult
    | PlanningResult
    | ChapterOutlineResult
    | ChapterDetailResult
    | ContentResult
    | ConsistencyResult,
    Field(discriminator="kind"),
]

AgentResultAdapter: TypeAdapter[AgentResult] = TypeAdapter(AgentResult)


__all__ = [
    "AgentResult",
    "AgentResultAdapter",
    "ChapterDetailResult",
    "ChapterOutlineResult",
    "ChapterPlan",
    "ChapterStructure",
    "ConsistencyReport",
    "ConsistencyResult",
    "ContentResult",
    "OutlineResult",
    "PlanningResult",
    "TitlesResult",
    "VolumePlan",
]
