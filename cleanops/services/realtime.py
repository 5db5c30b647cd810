import asyncio
from typing import Dict, Set, Any, Optional

import structlog
from fastapi import WebSocket

log = structlog.get_logger(__name__)

ALL_CHANNEL = "*"


class AssistFeedHub:
    """Change feed for bathroom assist requests (INSERT/UPDATE of committed rows)."""

    def __init__(self) -> None:
        # channel ("*" or customer name) -> set of WebSocket connections
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, ws: WebSocket, channel: str = ALL_CHANNEL) -> None:
        self._loop = asyncio.get_running_loop()
        async with self._lock:
            self._connections.setdefault(channel, set()).add(ws)

    async def disconnect(self, ws: WebSocket, channel: str = ALL_CHANNEL) -> None:
        async with self._lock:
            conns = self._connections.get(channel)
            if conns is not None:
                conns.discard(ws)
                if not conns:
                    self._connections.pop(channel, None)

    def subscriber_count(self) -> int:
        return sum(len(c) for c in self._connections.values())

    async def broadcast(self, event: str, payload: Any, customer_name: Optional[str] = None) -> None:
        data = {"event": event, "table": "bathroom_assist_requests", "data": payload}
        async with self._lock:
            targets = [(ALL_CHANNEL, ws) for ws in self._connections.get(ALL_CHANNEL, set())]
            if customer_name:
                targets.extend((customer_name, ws) for ws in self._connections.get(customer_name, set()))
        for channel, ws in targets:
            try:
                await ws.send_json(data)
            except Exception as e:
                # dead socket; drop it
                log.info("assist_feed_send_failed", channel=channel, error=str(e))
                await self.disconnect(ws, channel)

    def publish(self, event: str, payload: Any, customer_name: Optional[str] = None) -> None:
        """Schedule a broadcast from any thread (sync routes, the escalation sweep)."""
        loop = self._loop
        if loop is None or loop.is_closed() or not self._connections:
            return
        coro = self.broadcast(event, payload, customer_name)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.create_task(coro)
            return
        fut = asyncio.run_coroutine_threadsafe(coro, loop)
        fut.add_done_callback(_log_publish_failure)


def _log_publish_failure(fut) -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        log.warning("assist_feed_publish_failed", error=str(exc))


# Global singleton hub
hub = AssistFeedHub()
