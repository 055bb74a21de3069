# src/daer/models/sqlalchemy_models.py
"""SQLAlchemy ORM models for novels, their generated artifacts and tasks."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .enums import ChapterStatus, NovelStatus, TaskStatus


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UserSQL(Base):
    """An account that owns novels and AI provider configurations.

    Authentication data (sessions, OAuth accounts, verification tokens) is
    managed outside this service; only the identity is stored here.
    """

    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class NovelSQL(Base):
    """Aggregate root for one story project.

    Holds the creative brief (title, genre and style tags, target length,
    background text and a structured world-setting document) together with
    the number of the outline version currently in use. Characters, volumes,
    chapters, knowledge bases, outline versions and tasks all hang off a
    novel and are removed with it.
    """

    __tablename__ = "novels"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str | None] = mapped_column(Text)
    genre: Mapped[list[str]] = mapped_column(JSON, default=list)
    style: Mapped[list[str]] = mapped_column(JSON, default=list)
    target_audience: Mapped[list[str]] = mapped_column(JSON, default=list)
    target_words: Mapped[int] = mapped_column(Integer, default=100000)
    min_chapter_words: Mapped[int] = mapped_column(Integer, default=3000)
    background: Mapped[str | None] = mapped_column(Text)
    world_settings: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    current_outline_version: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(32), default=NovelStatus.DRAFT.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    characters: Mapped[list[CharacterSQL]] = relationship(
        back_populates="novel", cascade="all, delete-orphan", passive_deletes=True
    )
    volumes: Mapped[list[VolumeSQL]] = relationship(
        back_populates="novel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="VolumeSQL.order",
    )
    knowledge_bases: Mapped[list[KnowledgeBaseSQL]] = relationship(
        back_populates="novel", cascade="all, delete-orphan", passive_deletes=True
    )


class CharacterSQL(Base):
    """A character in a novel.

    ``personality`` is a list of trait tags, ``abilities`` a list of
    ``{"name", "level"}`` objects and ``relationships`` a list of
    ``{"characterId", "relation"}`` objects. ``current_state`` is free text
    describing where the character stands at the current point of the story.
    """

    __tablename__ = "characters"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    novel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str | None] = mapped_column(Text)
    personality: Mapped[list[str]] = mapped_column(JSON, default=list)
    abilities: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    relationships: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    current_state: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    novel: Mapped[NovelSQL] = relationship(back_populates="characters")


class KnowledgeBaseSQL(Base):
    """A named collection of reference documents attached to a novel."""

    __tablename__ = "knowledge_bases"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    novel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    novel: Mapped[NovelSQL] = relationship(back_populates="knowledge_bases")
    documents: Mapped[list[KnowledgeDocumentSQL]] = relationship(
        back_populates="knowledge_base",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="KnowledgeDocumentSQL.created_at",
    )


class KnowledgeDocumentSQL(Base):
    """A single reference document; its text is fed to the agents verbatim."""

    __tablename__ = "knowledge_documents"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    knowledge_base_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("knowledge_bases.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[str | None] = mapped_column(Text)
    file_type: Mapped[str | None] = mapped_column(Text)
    embedding: Mapped[str | None] = mapped_column(Text)
    doc_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    knowledge_base: Mapped[KnowledgeBaseSQL] = relationship(back_populates="documents")


class OutlineVersionSQL(Base):
    """Immutable, numbered snapshot of a novel's outline.

    Versions are numbered per novel starting at 1. ``generation_mode`` names
    what produced the text (an agent mode, a manual save or a rollback) and
    ``generation_context`` records the inputs used. Rows are never updated
    except for the ``is_locked`` flag.
    """

    __tablename__ = "outline_versions"
    __table_args__ = (UniqueConstraint("novel_id", "version"),)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    novel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    generation_mode: Mapped[str | None] = mapped_column(String(32))
    generation_context: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class VolumeSQL(Base):
    """An ordered group of chapters within a novel."""

    __tablename__ = "volumes"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    novel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    novel: Mapped[NovelSQL] = relationship(back_populates="volumes")
    chapters: Mapped[list[ChapterSQL]] = relationship(
        back_populates="volume",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ChapterSQL.order",
    )


class ChapterSQL(Base):
    """A chapter and its generated artifacts.

    ``outline`` is the high-level summary, ``detail_outline`` the scene
    breakdown and ``content`` the prose. ``word_count`` is the character
    length of ``content``. ``status`` follows the chapter's content tasks:
    ``pending -> generating -> completed | failed``.
    """

    __tablename__ = "chapters"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    volume_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("volumes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    novel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    outline: Mapped[str | None] = mapped_column(Text)
    detail_outline: Mapped[str | None] = mapped_column(Text)
    content: Mapped[str | None] = mapped_column(Text)
    word_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(
        String(32), default=ChapterStatus.PENDING.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    volume: Mapped[VolumeSQL] = relationship(back_populates="chapters")


class TaskSQL(Base):
    """Durable record of one requested generation and its outcome.

    Created by the API at submission time and mutated only by the worker.
    ``result`` holds the agent output, ``error`` the failure message and
    ``task_metadata`` the model name and token usage.
    """

    __tablename__ = "tasks"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    novel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    chapter_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("chapters.id", ondelete="CASCADE")
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=TaskStatus.QUEUED.value, nullable=False
    )
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    error: Mapped[str | None] = mapped_column(Text)
    task_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class AIConfigSQL(Base):
    """A user's stored LLM provider settings.

    ``parameters`` holds the sampling options (``temperature``,
    ``maxTokens``, ``topP``). At most one row per user has ``is_default``.
    """

    __tablename__ = "ai_configs"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    api_key: Mapped[str] = mapped_column(Text, nullable=False)
    base_url: Mapped[str | None] = mapped_column(Text)
    parameters: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class JobSQL(Base):
    """Queued unit of work that executes one task's pipeline.

    ``payload`` is the camelCase job document ``{taskId, novelId,
    chapterId?, type, input?}``. Workers claim rows in priority order, oldest
    first.
    """

    __tablename__ = "jobs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    error: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


__all__ = [
    "AIConfigSQL",
    "ChapterSQL",
    "CharacterSQL",
    "JobSQL",
    "KnowledgeBaseSQL",
    "KnowledgeDocumentSQL",
    "NovelSQL",
    "OutlineVersionSQL",
    "TaskSQL",
    "UserSQL",
    "VolumeSQL",
]
