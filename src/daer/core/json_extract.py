# src/daer/core/json_extract.py
"""Extract structured JSON from free-form LLM responses.

Models asked for "JSON only" still wrap the payload in markdown fences or
surround it with commentary. :func:`extract_json` finds the first balanced
span that is a JSON value and parses it strictly, falling back to
``json_repair`` for near-JSON (trailing commas, single quotes, unterminated
output). Anything that cannot be recovered raises
:class:`~daer.core.errors.StructuredOutputError`.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import json_repair
from pydantic import ValidationError

from daer.core.errors import StructuredOutputError
from daer.models.results import ChapterStructure, ConsistencyReport

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*\n?(.*?)```", re.DOTALL)
_CLOSERS = {"{": "}", "[": "]"}


def strip_fences(text: str) -> str:
    """Return the body of the first fenced block, or ``text`` unchanged."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    # Unterminated fence: drop the opening marker only.
    if text.lstrip().startswith("```"):
        body = text.lstrip()[3:]
        newline = body.find("\n")
        return body[newline + 1 :] if newline != -1 else ""
    return text.strip()


def find_json_span(text: str, offset: int = 0) -> tuple[int, int | None]:
    """Locate the first JSON object or array in ``text`` at or after ``offset``.

    Returns ``(start, end)`` where ``end`` is the index just past the matching
    closer, or ``None`` when the value never closes. Brackets inside string
    literals are ignored and backslash escapes are honoured.
    """
    starts = [i for i in (text.find("{", offset), text.find("[", offset)) if i != -1]
    if not starts:
        raise StructuredOutputError("No JSON value found in model output", text)
    start = min(starts)

    stack: list[str] = []
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack[-1] != ch:
                # Mismatched closer; let the lenient parser decide.
                return start, idx + 1
            stack.pop()
            if not stack:
                return start, idx + 1
    return start, None


def _candidates(text: str) -> list[str]:
    """Every top-level bracketed span in order; an unclosed one ends the list."""
    spans: list[str] = []
    offset = 0
    while True:
        try:
            start, end = find_json_span(text, offset)
        except StructuredOutputError:
            break
        if end is None:
            spans.append(text[start:])
            break
        spans.append(text[start:end])
        offset = end
    return spans


def _pick(values: list[Any], prefer: type | None) -> Any:
    if prefer is not None:
        for value in values:
            if isinstance(value, prefer):
                return value
    return values[0]


def extract_json(text: str, prefer: type | None = None) -> Any:
    """Parse the first JSON value embedded in ``text``.

    Bracketed prose before the payload (``结论[见下文]：{...}``) is skipped:
    each bracketed span is tried strictly in turn, and ``json_repair`` only
    runs once none of them parses. With ``prefer`` set, the first value of
    that type wins over earlier values of another type.
    """
    if not text or not text.strip():
        raise StructuredOutputError("Empty model output", text or "")

    body = strip_fences(text)
    candidates = _candidates(body)
    if not candidates:
        raise StructuredOutputError("No JSON value found in model output", text)

    parsed: list[Any] = []
    for candidate in candidates:
        try:
            parsed.append(json.loads(candidate))
        except json.JSONDecodeError as exc:
            logger.debug("Strict JSON parse failed: %s", exc)
    if parsed:
        return _pick(parsed, prefer)

    repaired: list[Any] = []
    for candidate in candidates:
        try:
            value = json_repair.loads(candidate)
        except (ValueError, RecursionError) as exc:
            logger.debug("JSON repair failed: %s", exc)
            continue
        if isinstance(value, (dict, list)):
            repaired.append(value)
    if not repaired:
        raise StructuredOutputError("Invalid JSON in model output", text)
    logger.info("Recovered malformed JSON from model output")
    return _pick(repaired, prefer)


def parse_planning(text: str) -> ChapterStructure:
    """Parse a chapter-planning response into volumes and chapters."""
    data = extract_json(text, prefer=dict)
    if isinstance(data, list):
        data = {"volumes": data}
    try:
        return ChapterStructure.model_validate(data)
    except ValidationError as exc:
        raise StructuredOutputError(
            f"Chapter planning output has an unexpected shape: {exc.error_count()} error(s)",
            text,
        ) from exc


def parse_consistency(text: str) -> ConsistencyReport:
    """Parse a consistency-check response into a pass/fail report."""
    data = extract_json(text, prefer=dict)
    try:
        return ConsistencyReport.model_validate(data)
    except ValidationError as exc:
        raise StructuredOutputError(
            f"Consistency check output has an unexpected shape: {exc.error_count()} error(s)",
            text,
        ) from exc


__all__ = [
    "extract_json",
    "find_json_span",
    "parse_consistency",
    "parse_planning",
    "strip_fences",
]
