"""Durable job queue, task submission and per-chapter locks."""

import asyncio
import uuid

import pytest

from daer.core.errors import AppError
from daer.core.locks import ChapterLocks, advisory_key
from daer.core.queue import JobQueue
from daer.models.enums import TaskType
from daer.models.sqlalchemy_models import JobSQL
from daer.models.task import JobPayload
from daer.services.tasks import TaskSubmitter


def payload(task_type=TaskType.TITLE, **overrides):
    values = dict(task_id=uuid.uuid4(), novel_id=uuid.uuid4(), type=task_type)
    values.update(overrides)
    return JobPayload(**values)


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_payload_is_stored_in_wire_shape(queue, database):
    job = payload(TaskType.CONTENT, chapter_id=uuid.uuid4(), input={"modifiedOutline": "x"})
    job_id = await queue.enqueue(job)
    async with database.session() as session:
        row = await session.get(JobSQL, job_id)
    assert set(row.payload) == {"taskId", "novelId", "chapterId", "type", "input"}
    assert row.payload["type"] == "content"
    assert row.status == "queued"


@pytest.mark.asyncio
async def test_dequeue_orders_by_priority_then_age(queue):
    low = payload()
    high = payload()
    later_low = payload()
    await queue.enqueue(low, priority=1)
    await queue.enqueue(high, priority=5)
    await queue.enqueue(later_low, priority=1)

    claimed = await queue.dequeue_batch(3)
    assert [c.payload.task_id for c in claimed] == [high.task_id, low.task_id, later_low.task_id]


@pytest.mark.asyncio
async def test_claimed_jobs_are_not_handed_out_twice(queue):
    await queue.enqueue(payload())
    first = await queue.dequeue()
    assert first is not None
    assert await queue.dequeue() is None
    assert await queue.dequeue_batch(0) == []


@pytest.mark.asyncio
async def test_cancel_only_withdraws_unclaimed_jobs(queue):
    claimed_job = payload()
    waiting_job = payload()
    await queue.enqueue(claimed_job)
    await queue.dequeue()
    await queue.enqueue(waiting_job)

    assert await queue.cancel(claimed_job.task_id) == 0
    assert await queue.cancel(waiting_job.task_id) == 1
    assert await queue.list_queued() == []


@pytest.mark.asyncio
async def test_mark_failed_records_error(queue, database):
    await queue.enqueue(payload())
    job = await queue.dequeue()
    await queue.mark_failed(job.id, "crashed")
    async with database.session() as session:
        row = await session.get(JobSQL, job.id)
    assert row.status == "failed"
    assert row.error == "crashed"


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submit_creates_task_and_one_job(submitter, queue, seed):
    task = await submitter.submit(
        seed.novel_id, TaskType.CHAPTER_PLANNING, data={"outline": "大纲"}
    )
    queued = await queue.list_queued()
    assert task.status == "queued"
    assert len(queued) == 1
    assert queued[0].task_id == task.id
    assert queued[0].input == {"outline": "大纲"}


class BrokenQueue(JobQueue):
    async def enqueue(self, payload, *, priority=1):
        raise RuntimeError("queue offline")


@pytest.mark.asyncio
async def test_failed_enqueue_marks_task_failed(task_store, database, seed):
    submitter = TaskSubmitter(task_store, BrokenQueue(database))
    with pytest.raises(AppError) as exc:
        await submitter.submit(seed.novel_id, TaskType.OUTLINE)
    assert exc.value.status_code == 500
    tasks = await task_store.list_by_novel(seed.novel_id)
    assert [t.status for t in tasks] == ["failed"]
    assert "queue offline" in tasks[0].error


@pytest.mark.asyncio
async def test_cancel_before_pickup(submitter, queue, task_store, seed):
    task = await submitter.submit(seed.novel_id, TaskType.OUTLINE)
    assert await submitter.cancel(task.id) is True
    assert await queue.dequeue() is None
    assert (await task_store.get(task.id)).status == "cancelled"


# ---------------------------------------------------------------------------
# Chapter locks
# ---------------------------------------------------------------------------


def test_advisory_key_is_signed_64_bit():
    key = advisory_key(uuid.UUID("ffffffff-ffff-ffff-0000-000000000000"))
    assert key == -1
    assert -(2**63) <= advisory_key(uuid.uuid4()) < 2**63


@pytest.mark.asyncio
async def test_same_chapter_jobs_run_one_at_a_time():
    locks = ChapterLocks()
    chapter_id = uuid.uuid4()
    order = []

    async def job(name):
        async with locks.hold(chapter_id):
            order.append(f"{name}:start")
            await asyncio.sleep(0.01)
            order.append(f"{name}:end")

    await asyncio.gather(job("a"), job("b"))
    assert order == ["a:start", "a:end", "b:start", "b:end"]
    assert not locks.is_locked(chapter_id)
    assert locks._locks == {}


@pytest.mark.asyncio
async def test_different_chapters_do_not_block_each_other():
    locks = ChapterLocks()
    first, second = uuid.uuid4(), uuid.uuid4()
    async with locks.hold(first):
        async with locks.hold(second):
            assert locks.is_locked(first)
            assert locks.is_locked(second)
