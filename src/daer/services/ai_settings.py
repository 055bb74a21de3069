# src/daer/services/ai_settings.py
"""Stored AI provider configurations and provider resolution."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from daer.config import AIFallbackConfig
from daer.core.errors import ConfigurationError, NotFoundError
from daer.core.llm import ProviderConfig
from daer.models.schemas import AIConfigCreate, AIConfigUpdate
from daer.models.sqlalchemy_models import AIConfigSQL

logger = logging.getLogger(__name__)

NO_CONFIG_MESSAGE = (
    "No AI configuration found. Please configure AI settings or set AI_API_KEY "
    "in environment."
)


def provider_config_from_row(row: AIConfigSQL) -> ProviderConfig:
    params: dict[str, Any] = row.parameters or {}
    return ProviderConfig(
        provider=row.provider,
        model=row.model,
        api_key=row.api_key,
        base_url=row.base_url or None,
        temperature=params.get("temperature"),
        max_tokens=params.get("maxTokens"),
        top_p=params.get("topP"),
    )


def provider_config_from_env(fallback: AIFallbackConfig) -> ProviderConfig:
    return ProviderConfig(
        provider=fallback.provider,
        model=fallback.model,
        api_key=fallback.api_key or "",
        base_url=fallback.base_url,
        temperature=fallback.temperature,
        max_tokens=fallback.max_tokens,
        top_p=fallback.top_p,
    )


async def list_configs(session: AsyncSession, user_id: str) -> list[AIConfigSQL]:
    """The user's configurations, default first, then oldest first."""
    result = await session.execute(
        select(AIConfigSQL)
        .where(AIConfigSQL.user_id == user_id)
        .order_by(AIConfigSQL.is_default.desc(), AIConfigSQL.created_at.asc())
    )
    return list(result.scalars())


async def resolve_provider_config(
    session: AsyncSession, user_id: str, fallback: AIFallbackConfig | None
) -> ProviderConfig:
    """Pick the provider settings for ``user_id``.

    The user's default configuration wins, then their first stored one, then
    the environment fallback when ``AI_API_KEY`` is set. Otherwise raises
    :class:`ConfigurationError` without touching any provider.
    """
    configs = await list_configs(session, user_id)
    if configs:
        return provider_config_from_row(configs[0])
    if fallback is not None and fallback.available:
        logger.info("ai.config.env_fallback", extra={"user_id": user_id})
        return provider_config_from_env(fallback)
    raise ConfigurationError(NO_CONFIG_MESSAGE)


async def _clear_default(session: AsyncSession, user_id: str, keep: UUID | None) -> None:
    stmt = update(AIConfigSQL).where(AIConfigSQL.user_id == user_id).values(is_default=False)
    if keep is not None:
        stmt = stmt.where(AIConfigSQL.id != keep)
    await session.execute(stmt)


async def create_config(
    session: AsyncSession, user_id: str, data: AIConfigCreate
) -> AIConfigSQL:
    row = AIConfigSQL(
        user_id=user_id,
        provider=data.provider.value,
        model=data.model,
        api_key=data.api_key,
        base_url=data.base_url,
        parameters=data.parameters.model_dump(by_alias=True, exclude_none=True),
        is_default=data.is_default,
    )
    if data.is_default:
        await _clear_default(session, user_id, None)
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


async def get_config(session: AsyncSession, user_id: str, config_id: UUID) -> AIConfigSQL:
    row = await session.get(AIConfigSQL, config_id)
    if row is None or row.user_id != user_id:
        raise NotFoundError("AI configuration not found")
    return row


async def update_config(
    session: AsyncSession, user_id: str, config_id: UUID, data: AIConfigUpdate
) -> AIConfigSQL:
    row = await get_config(session, user_id, config_id)
    changes = data.model_dump(exclude_unset=True)
    if "parameters" in changes:
        params = data.parameters.model_dump(by_alias=True, exclude_none=True) if data.parameters else {}
        row.parameters = params
        changes.pop("parameters")
    if "provider" in changes and data.provider is not None:
        row.provider = data.provider.value
        changes.pop("provider")
    if changes.get("is_default"):
        await _clear_default(session, user_id, row.id)
    for key, value in changes.items():
        if value is not None or key == "base_url":
            setattr(row, key, value)
    await session.commit()
    await session.refresh(row)
    return row


async def delete_config(session: AsyncSession, user_id: str, config_id: UUID) -> None:
    row = await get_config(session, user_id, config_id)
    await session.delete(row)
    await session.commit()


__all__ = [
    "NO_CONFIG_MESSAGE",
    "create_config",
    "delete_config",
    "get_config",
    "list_configs",
    "provider_config_from_env",
    "provider_config_from_row",
    "resolve_provider_config",
    "update_config",
]
