"""Shared pytest fixtures for the daer test suite."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import pytest
import pytest_asyncio

from daer.config import AIFallbackConfig, DaerConfig, SystemConfig, WorkerConfig
from daer.core.llm import ChatMessage, ChatResponse, ChatStream, ProviderConfig
from daer.core.pipeline import GenerationPipeline
from daer.core.queue import JobQueue
from daer.models.sqlalchemy_models import (
    AIConfigSQL,
    ChapterSQL,
    CharacterSQL,
    KnowledgeBaseSQL,
    KnowledgeDocumentSQL,
    NovelSQL,
    UserSQL,
    VolumeSQL,
)
from daer.services.tasks import TaskSubmitter
from daer.storage.db import Database
from daer.storage.tasks import TaskStore

USER_ID = "user-1"
PASSING_REPORT = json.dumps({"passed": True, "issues": [], "suggestions": []})


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeProvider:
    """Scripted provider: ``replies`` answer ``chat`` in order, ``chunks`` feed streams.

    A reply or chunk that is an exception instance is raised instead.
    """

    def __init__(
        self,
        replies: list[Any] | None = None,
        chunks: list[Any] | None = None,
        model: str = "fake-model",
    ) -> None:
        self.replies = list(replies or [])
        self.chunks = list(chunks or [])
        self.model = model
        self.calls: list[list[ChatMessage]] = []
        self.stream_calls: list[list[ChatMessage]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls) + len(self.stream_calls)

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        self.calls.append(messages)
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        return ChatResponse(content=reply, tokens_used=42, model=self.model)

    def stream_chat(self, messages: list[ChatMessage]) -> ChatStream:
        self.stream_calls.append(messages)
        return ChatStream(self._chunks(), model=self.model)

    async def _chunks(self):
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


@dataclass
class RecordingNotifier:
    events: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)
    broadcasts: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    async def emit_to_task(self, task_id: str, event: str, data: dict[str, Any]) -> None:
        self.events.append((task_id, event, data))

    async def broadcast(self, event: str, data: dict[str, Any]) -> None:
        self.broadcasts.append((event, data))

    def named(self, event: str) -> list[dict[str, Any]]:
        return [data for _, name, data in self.events if name == event]


class RecordingFactory:
    """Provider factory that hands out one provider and records the configs it saw."""

    def __init__(self, provider: FakeProvider) -> None:
        self.provider = provider
        self.configs: list[ProviderConfig] = []

    def __call__(self, config: ProviderConfig) -> FakeProvider:
        self.configs.append(config)
        return self.provider


@dataclass
class Seed:
    user_id: str
    novel_id: UUID
    volume_id: UUID
    chapter_ids: list[UUID]


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def database():
    """In-memory SQLite database with all tables created."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    yield db
    await db.dispose()


async def seed_novel(database: Database, *, with_ai_config: bool = True) -> Seed:
    async with database.session() as session:
        session.add(UserSQL(id=USER_ID, email="writer@example.com", name="Writer"))
        novel = NovelSQL(
            user_id=USER_ID,
            title="星海孤舟",
            genre=["科幻"],
            style=["热血"],
            target_words=9000,
            min_chapter_words=3000,
            background="人类在星海边缘建立了最后的殖民地。",
            world_settings={
                "timeBackground": "公元三千年",
                "worldRules": ["超光速航行需要星门"],
                "forbiddenRules": ["死者不能复生"],
            },
        )
        session.add(novel)
        await session.flush()
        session.add(
            CharacterSQL(
                novel_id=novel.id,
                name="林舟",
                role="主角",
                personality=["冷静", "果断"],
                abilities=[{"name": "驾驶"}],
                current_state="重伤初愈",
            )
        )
        kb = KnowledgeBaseSQL(novel_id=novel.id, name="设定集")
        session.add(kb)
        await session.flush()
        session.add(
            KnowledgeDocumentSQL(knowledge_base_id=kb.id, title="星门", content="星门由先驱者建造。")
        )
        volume = VolumeSQL(novel_id=novel.id, title="第一卷", order=1)
        session.add(volume)
        await session.flush()
        chapters = [
            ChapterSQL(
                volume_id=volume.id,
                novel_id=novel.id,
                title="启航",
                order=1,
                outline="林舟离开殖民地",
                content="第一章的正文。",
                word_count=7,
                status="completed",
            ),
            ChapterSQL(
                volume_id=volume.id,
                novel_id=novel.id,
                title="星门",
                order=2,
                outline="穿越星门",
                detail_outline="场景一：星门前的对峙",
                status="pending",
            ),
        ]
        session.add_all(chapters)
        if with_ai_config:
            session.add(
                AIConfigSQL(
                    user_id=USER_ID,
                    provider="openai",
                    model="gpt-4o-mini",
                    api_key="sk-test-123456",
                    parameters={"temperature": 0.5},
                    is_default=True,
                )
            )
        await session.commit()
        return Seed(
            user_id=USER_ID,
            novel_id=novel.id,
            volume_id=volume.id,
            chapter_ids=[c.id for c in chapters],
        )


@pytest_asyncio.fixture
async def seed(database):
    return await seed_novel(database)


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def factory(provider):
    return RecordingFactory(provider)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def pipeline(database, notifier, factory):
    return GenerationPipeline(database, notifier, provider_factory=factory)


@pytest.fixture
def queue(database):
    return JobQueue(database)


@pytest.fixture
def task_store(database):
    return TaskStore(database)


@pytest.fixture
def submitter(task_store, queue):
    return TaskSubmitter(task_store, queue)


@pytest.fixture
def config():
    """Configuration for app tests: auth disabled, worker off, no env fallback key."""
    return DaerConfig(
        ai=AIFallbackConfig(api_key=None),
        system=SystemConfig(disable_auth=True, default_user_id=USER_ID),
        worker=WorkerConfig(worker_enabled=False, db_wait_attempts=1, db_wait_seconds=0),
    )
