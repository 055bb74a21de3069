"""Task event fan-out to subscribed connections."""

import asyncio

import pytest

from daer.web.websocket import TaskNotifier


class FakeConnection:
    def __init__(self, fail=False):
        self.frames = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(data)

    def events(self, name=None):
        return [f for f in self.frames if name is None or f["event"] == name]


@pytest.mark.asyncio
async def test_two_subscribers_receive_every_chunk_in_order():
    notifier = TaskNotifier()
    first, second = FakeConnection(), FakeConnection()
    notifier.join(first, "task-1")
    notifier.join(second, "task-1")

    for chunk in ("一", "二", "三", "四"):
        await notifier.emit_to_task("task-1", "task:chunk", {"taskId": "task-1", "chunk": chunk})

    expected = [
        {"event": "task:chunk", "data": {"taskId": "task-1", "chunk": c}} for c in "一二三四"
    ]
    assert first.frames == expected
    assert second.frames == expected


@pytest.mark.asyncio
async def test_events_are_scoped_to_the_task():
    notifier = TaskNotifier()
    watcher, bystander = FakeConnection(), FakeConnection()
    notifier.join(watcher, "task-1")
    notifier.join(bystander, "task-2")

    await notifier.emit_to_task("task-1", "task:completed", {"taskId": "task-1"})

    assert len(watcher.frames) == 1
    assert bystander.frames == []


@pytest.mark.asyncio
async def test_broadcast_reaches_every_connection():
    notifier = TaskNotifier()
    joined, idle = FakeConnection(), FakeConnection()
    notifier.join(joined, "task-1")
    notifier.register(idle)

    await notifier.broadcast("novel:updated", {"novelId": "n-1"})

    assert joined.events("novel:updated") == idle.events("novel:updated") != []


@pytest.mark.asyncio
async def test_leave_stops_delivery():
    notifier = TaskNotifier()
    connection = FakeConnection()
    notifier.join(connection, "task-1")
    notifier.leave(connection, "task-1")

    await notifier.emit_to_task("task-1", "task:progress", {"taskId": "task-1"})

    assert connection.frames == []
    assert notifier.subscribers("task-1") == 0


@pytest.mark.asyncio
async def test_failed_send_drops_only_that_client():
    notifier = TaskNotifier()
    broken, healthy = FakeConnection(fail=True), FakeConnection()
    notifier.join(broken, "task-1")
    notifier.join(healthy, "task-1")

    await notifier.emit_to_task("task-1", "task:chunk", {"chunk": "a"})
    await notifier.emit_to_task("task-1", "task:chunk", {"chunk": "b"})

    assert [f["data"]["chunk"] for f in healthy.frames] == ["a", "b"]
    assert notifier.subscribers("task-1") == 1
    assert id(broken) not in notifier.active_connections


@pytest.mark.asyncio
async def test_emit_without_subscribers_is_a_no_op():
    notifier = TaskNotifier()
    await notifier.emit_to_task("nobody", "task:failed", {"error": "x"})
    assert notifier.rooms == {}


class StalledConnection(FakeConnection):
    """A client whose socket never drains."""

    def __init__(self):
        super().__init__()
        self.released = asyncio.Event()

    async def send_json(self, data):
        await self.released.wait()
        self.frames.append(data)


@pytest.mark.asyncio
async def test_stalled_client_is_dropped_after_timeout():
    notifier = TaskNotifier(send_timeout=0.05)
    stalled, healthy = StalledConnection(), FakeConnection()
    notifier.join(stalled, "task-1")
    notifier.join(healthy, "task-1")

    await asyncio.wait_for(
        notifier.emit_to_task("task-1", "task:chunk", {"chunk": "a"}), timeout=1
    )

    assert [f["data"]["chunk"] for f in healthy.frames] == ["a"]
    assert id(stalled) not in notifier.active_connections
    assert notifier.subscribers("task-1") == 1


@pytest.mark.asyncio
async def test_stalled_client_does_not_block_other_tasks():
    notifier = TaskNotifier(send_timeout=5)
    stalled, other = StalledConnection(), FakeConnection()
    notifier.join(stalled, "task-1")
    notifier.join(other, "task-2")

    pending = asyncio.create_task(notifier.emit_to_task("task-1", "task:chunk", {"chunk": "a"}))
    await asyncio.sleep(0)
    await asyncio.wait_for(
        notifier.emit_to_task("task-2", "task:chunk", {"chunk": "b"}), timeout=0.5
    )

    assert other.frames == [{"event": "task:chunk", "data": {"chunk": "b"}}]
    assert not pending.done()
    stalled.released.set()
    await pending
    assert stalled.frames == [{"event": "task:chunk", "data": {"chunk": "a"}}]
