"""Task record creation and guarded status transitions."""

import uuid

import pytest

from daer.models.enums import TaskStatus, TaskType


@pytest.mark.asyncio
async def test_created_task_is_queued_at_zero(task_store, seed):
    for task_type in TaskType:
        task = await task_store.create(seed.novel_id, task_type)
        assert task.status == "queued"
        assert task.progress == 0
        assert task.result is None
        assert task.error is None


@pytest.mark.asyncio
async def test_start_only_from_queued(task_store, seed):
    task = await task_store.create(seed.novel_id, TaskType.TITLE)
    assert await task_store.start(task.id) is True
    assert await task_store.start(task.id) is False
    assert await task_store.status(task.id) == TaskStatus.RUNNING


@pytest.mark.asyncio
async def test_complete_records_result_and_metadata(task_store, seed):
    task = await task_store.create(seed.novel_id, TaskType.TITLE)
    await task_store.start(task.id)
    moved = await task_store.complete(
        task.id, {"kind": "title", "content": "书名"}, {"model": "m", "tokensUsed": 3}
    )
    stored = await task_store.get(task.id)
    assert moved is True
    assert stored.status == "completed"
    assert stored.progress == 100
    assert stored.result == {"kind": "title", "content": "书名"}
    assert stored.task_metadata == {"model": "m", "tokensUsed": 3}


@pytest.mark.asyncio
async def test_terminal_state_is_never_overwritten(task_store, seed):
    task = await task_store.create(seed.novel_id, TaskType.OUTLINE)
    await task_store.start(task.id)
    assert await task_store.cancel(task.id) is True

    assert await task_store.complete(task.id, {"kind": "outline"}, {}) is False
    assert await task_store.fail(task.id, "boom") is False
    stored = await task_store.get(task.id)
    assert stored.status == "cancelled"
    assert stored.error is None


@pytest.mark.asyncio
async def test_fail_keeps_message(task_store, seed):
    task = await task_store.create(seed.novel_id, TaskType.CONTENT, seed.chapter_ids[1])
    await task_store.start(task.id)
    assert await task_store.fail(task.id, "Novel not found") is True
    stored = await task_store.get(task.id)
    assert stored.status == "failed"
    assert stored.error == "Novel not found"
    assert stored.chapter_id == seed.chapter_ids[1]


@pytest.mark.asyncio
async def test_progress_only_moves_running_tasks(task_store, seed):
    task = await task_store.create(seed.novel_id, TaskType.CONTENT)
    await task_store.set_progress(task.id, 50)
    assert (await task_store.get(task.id)).progress == 0
    await task_store.start(task.id)
    await task_store.set_progress(task.id, 180)
    assert (await task_store.get(task.id)).progress == 100


@pytest.mark.asyncio
async def test_status_of_missing_task_is_none(task_store):
    assert await task_store.status(uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_list_by_novel(task_store, seed):
    first = await task_store.create(seed.novel_id, TaskType.OUTLINE)
    second = await task_store.create(seed.novel_id, TaskType.TITLE)
    listed = await task_store.list_by_novel(seed.novel_id)
    assert {t.id for t in listed} == {first.id, second.id}
