# src/daer/web/websocket.py
"""WebSocket connections and per-task event fan-out."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class TaskNotifier:
    """Track connected clients and the task rooms they joined.

    ``emit_to_task`` reaches every client subscribed to that task, in call
    order; ``broadcast`` reaches every connected client. Delivery is best
    effort: a client whose send fails is dropped and must poll the task
    instead.
    """

    def __init__(self, send_timeout: float = 5.0) -> None:
        # Keyed by id(): WebSocket objects are unhashable mappings.
        self.active_connections: dict[int, Connection] = {}
        self.rooms: dict[str, dict[int, Connection]] = {}
        self.send_timeout = send_timeout
        self._send_locks: dict[int, asyncio.Lock] = {}

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.register(websocket)

    def register(self, connection: Connection) -> None:
        self.active_connections.setdefault(id(connection), connection)

    def disconnect(self, connection: Connection) -> None:
        self.active_connections.pop(id(connection), None)
        self._send_locks.pop(id(connection), None)
        for task_id in [t for t, members in self.rooms.items() if id(connection) in members]:
            self.leave(connection, task_id)

    def join(self, connection: Connection, task_id: str) -> None:
        self.register(connection)
        self.rooms.setdefault(str(task_id), {})[id(connection)] = connection

    def leave(self, connection: Connection, task_id: str) -> None:
        members = self.rooms.get(str(task_id))
        if members is None:
            return
        members.pop(id(connection), None)
        if not members:
            del self.rooms[str(task_id)]

    def subscribers(self, task_id: str) -> int:
        return len(self.rooms.get(str(task_id), ()))

    async def emit_to_task(self, task_id: str, event: str, data: dict[str, Any]) -> None:
        members = list(self.rooms.get(str(task_id), {}).values())
        await self._send(members, event, data)

    async def send(self, connection: Connection, event: str, data: dict[str, Any]) -> None:
        await self._send([connection], event, data)

    async def broadcast(self, event: str, data: dict[str, Any]) -> None:
        await self._send(list(self.active_connections.values()), event, data)

    async def _send(self, targets: list[Connection], event: str, data: dict[str, Any]) -> None:
        if not targets:
            return
        message = {"event": event, "data": data}
        await asyncio.gather(*(self._deliver(c, message) for c in targets))

    async def _deliver(self, connection: Connection, message: dict[str, Any]) -> None:
        # Per-socket lock keeps frame order; each send is bounded by send_timeout.
        lock = self._send_locks.setdefault(id(connection), asyncio.Lock())
        try:
            async with lock:
                await asyncio.wait_for(connection.send_json(message), self.send_timeout)
        except Exception as exc:
            logger.info("ws.client_dropped: %s", str(exc) or type(exc).__name__)
            self.disconnect(connection)


async def handle_client(notifier: TaskNotifier, websocket: WebSocket) -> None:
    """Serve one client: ``subscribe:task`` / ``unsubscribe:task`` until it leaves."""
    await notifier.connect(websocket)
    try:
        while True:
            try:
                frame = json.loads(await websocket.receive_text())
            except ValueError:
                continue
            if not isinstance(frame, dict):
                continue
            event = frame.get("event")
            task_id = frame.get("data")
            if isinstance(task_id, dict):
                task_id = task_id.get("taskId")
            if not task_id:
                continue
            if event == "subscribe:task":
                notifier.join(websocket, str(task_id))
                await notifier.send(websocket, "task:subscribed", {"taskId": str(task_id)})
            elif event == "unsubscribe:task":
                notifier.leave(websocket, str(task_id))
                await notifier.send(websocket, "task:unsubscribed", {"taskId": str(task_id)})
    except WebSocketDisconnect:
        pass
    finally:
        notifier.disconnect(websocket)


__all__ = ["Connection", "TaskNotifier", "handle_client"]
