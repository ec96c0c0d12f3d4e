from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable

from fastapi import WebSocket

from fxlab.core.events import Notification

logger = logging.getLogger(__name__)


class ActivityWebSocketHub:
    """In-process WebSocket pub/sub keyed by activity channel.

    Contract:
      - assign a connection to a channel via `connect(channel, websocket)`.
      - broadcast notification payloads with `broadcast(channel, payload)`.

    Payloads should be JSON-serializable dicts.
    """

    def __init__(self) -> None:
        self._by_channel: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task[None]] = set()

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_channel[channel].add(websocket)

    async def disconnect(self, channel: str, websocket: WebSocket) -> None:
        async with self._lock:
            conns = self._by_channel.get(channel)
            if not conns:
                return
            conns.discard(websocket)
            if not conns:
                self._by_channel.pop(channel, None)

    def connection_count(self, channel: str) -> int:
        return len(self._by_channel.get(channel, ()))

    async def broadcast(self, channel: str, payload: dict[str, object]) -> None:
        async with self._lock:
            conns = list(self._by_channel.get(channel, set()))

        if not conns:
            return

        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append(ws)

        if dead:
            logger.debug("dropping %d dead activity sockets on %s", len(dead), channel)
            async with self._lock:
                for ws in dead:
                    self._by_channel.get(channel, set()).discard(ws)

    def sink_for(self, channel: str) -> Callable[[Notification], None]:
        """Notification subscriber that schedules a broadcast on the running loop."""

        def _sink(note: Notification) -> None:
            if not self._by_channel.get(channel):
                return
            task = asyncio.get_running_loop().create_task(self.broadcast(channel, dict(note.as_payload())))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        return _sink


hub = ActivityWebSocketHub()
