# src/daer/web/streaming.py
"""Server-sent event endpoints: live outline generation and the writing assistant.

Both run inside the request and bypass the job queue. Lookups and provider
resolution happen before the response starts, so a missing novel or AI
configuration is still an ordinary HTTP error; failures after the first byte
are reported in-band.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from daer.agents import ASSIST_AGENT, OUTLINE_AGENT, ChatRequest, OutlineRequest, stream_agent
from daer.config import DaerConfig
from daer.core.errors import DaerError
from daer.models.enums import GenerationMode
from daer.models.schemas import ChatRequest as ChatBody
from daer.models.sqlalchemy_models import NovelSQL
from daer.services import ai_settings
from daer.services import outline as outline_service
from daer.services.context import build_agent_context
from daer.storage import crud
from daer.storage.db import Database
from daer.web.deps import get_config, get_database, get_owned_novel, get_session, get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_data(payload: Any) -> str:
    """Format one ``data:`` event."""
    if not isinstance(payload, str):
        payload = json.dumps(payload, ensure_ascii=False)
    return f"data: {payload}\n\n"


def _event_stream(events: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)


def _mode(value: str | None) -> GenerationMode:
    try:
        return GenerationMode(value) if value else GenerationMode.INITIAL
    except ValueError:
        return GenerationMode.INITIAL


@router.get("/novels/{novel_id}/generate/outline/stream")
async def stream_outline(
    request: Request,
    mode: str | None = None,
    existing_outline: str | None = Query(default=None, alias="existingOutline"),
    novel: NovelSQL = Depends(get_owned_novel),
    session: AsyncSession = Depends(get_session),
    database: Database = Depends(get_database),
    config: DaerConfig = Depends(get_config),
):
    """Stream a new outline and save it as the next version once complete."""
    generation_mode = _mode(mode)
    context = await build_agent_context(session, novel)
    provider_config = await ai_settings.resolve_provider_config(session, novel.user_id, config.ai)
    provider = request.app.state.provider_factory(provider_config)
    novel_id = novel.id
    outline_request = OutlineRequest(mode=generation_mode, existing_outline=existing_outline or "")

    async def events() -> AsyncIterator[str]:
        stream = stream_agent(provider, OUTLINE_AGENT, context, outline_request)
        try:
            async for chunk in stream:
                yield sse_data({"type": "chunk", "content": chunk})
            response = stream.response
            async with database.session() as write_session:
                await outline_service.create_version(
                    write_session,
                    novel_id,
                    response.content,
                    {"mode": generation_mode.value, "source": "stream", "model": response.model},
                    generation_mode,
                )
            yield sse_data({"type": "done"})
        except DaerError as exc:
            logger.warning("outline.stream_failed: %s", exc, extra={"novel_id": str(novel_id)})
            yield sse_data({"type": "error", "error": str(exc)})
        except Exception as exc:
            logger.exception("outline.stream_failed", extra={"novel_id": str(novel_id)})
            yield sse_data({"type": "error", "error": str(exc) or "Generation failed"})
        finally:
            await stream.aclose()

    return _event_stream(events())


@router.post("/chat")
async def chat(
    request: Request,
    body: ChatBody,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_user_id),
    config: DaerConfig = Depends(get_config),
):
    """Answer one message from the writing assistant as a stream of fragments."""
    novel = await crud.require_novel(session, body.novel_id, user_id)
    context = await build_agent_context(session, novel)
    provider_config = await ai_settings.resolve_provider_config(session, novel.user_id, config.ai)
    provider = request.app.state.provider_factory(provider_config)
    chat_request = ChatRequest(message=body.message, previous_content=body.previous_content)
    novel_id: UUID = novel.id

    async def events() -> AsyncIterator[str]:
        stream = stream_agent(provider, ASSIST_AGENT, context, chat_request)
        try:
            async for chunk in stream:
                yield sse_data({"content": chunk})
            yield sse_data("[DONE]")
        except Exception as exc:
            logger.warning("chat.stream_failed: %s", exc, extra={"novel_id": str(novel_id)})
            yield sse_data({"error": str(exc) or "Chat failed"})
        finally:
            await stream.aclose()

    return _event_stream(events())


__all__ = ["SSE_HEADERS", "router", "sse_data"]
