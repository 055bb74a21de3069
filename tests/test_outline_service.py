"""Outline version numbering, locking and rollback."""

import uuid

import pytest

from daer.core.errors import NotFoundError
from daer.models.enums import GenerationMode
from daer.models.sqlalchemy_models import NovelSQL
from daer.services import outline as outline_service


@pytest.mark.asyncio
async def test_versions_increase_from_one_regardless_of_mode(database, seed):
    modes = [
        GenerationMode.INITIAL,
        GenerationMode.MANUAL,
        GenerationMode.EXPAND,
        GenerationMode.ADJUST_PACE_FAST,
    ]
    async with database.session() as session:
        created = [
            await outline_service.create_version(session, seed.novel_id, f"大纲{i}", None, mode)
            for i, mode in enumerate(modes)
        ]
        novel = await session.get(NovelSQL, seed.novel_id)
        await session.refresh(novel)

    assert [row.version for row in created] == [1, 2, 3, 4]
    assert novel.current_outline_version == 4


@pytest.mark.asyncio
async def test_versions_are_numbered_per_novel(database, seed):
    async with database.session() as session:
        other = NovelSQL(user_id=seed.user_id, title="另一本书")
        session.add(other)
        await session.commit()
        await outline_service.create_version(session, seed.novel_id, "甲")
        row = await outline_service.create_version(session, other.id, "乙")
    assert row.version == 1


@pytest.mark.asyncio
async def test_list_versions_newest_first(database, seed):
    async with database.session() as session:
        for content in ("一", "二", "三"):
            await outline_service.create_version(session, seed.novel_id, content)
        versions = await outline_service.list_versions(session, seed.novel_id)
    assert [v.content for v in versions] == ["三", "二", "一"]


@pytest.mark.asyncio
async def test_rollback_copies_target_forward(database, seed):
    async with database.session() as session:
        first = await outline_service.create_version(
            session, seed.novel_id, "最初的大纲", {"note": "v1"}
        )
        await outline_service.create_version(session, seed.novel_id, "修改后的大纲")
        restored = await outline_service.rollback(session, seed.novel_id, first.id)
        target = await outline_service.get_version(session, first.id)

    assert restored.version == 3
    assert restored.content == "最初的大纲"
    assert restored.generation_mode == "rollback"
    assert restored.generation_context == {"note": "v1", "rollbackFrom": 1}
    # the target itself is untouched
    assert target.version == 1
    assert target.content == "最初的大纲"
    assert target.generation_mode == "initial"


@pytest.mark.asyncio
async def test_rollback_to_missing_version_is_not_found(database, seed):
    async with database.session() as session:
        with pytest.raises(NotFoundError, match="Target version not found"):
            await outline_service.rollback(session, seed.novel_id, uuid.uuid4())


@pytest.mark.asyncio
async def test_set_lock_toggles_flag(database, seed):
    async with database.session() as session:
        row = await outline_service.create_version(session, seed.novel_id, "大纲")
        locked = await outline_service.set_lock(session, row.id, True, seed.novel_id)
        assert locked.is_locked is True
        unlocked = await outline_service.set_lock(session, row.id, False, seed.novel_id)
        assert unlocked.is_locked is False


@pytest.mark.asyncio
async def test_set_lock_checks_novel(database, seed):
    async with database.session() as session:
        row = await outline_service.create_version(session, seed.novel_id, "大纲")
        with pytest.raises(NotFoundError):
            await outline_service.set_lock(session, row.id, True, uuid.uuid4())
