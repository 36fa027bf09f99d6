"""Push session changes and conversation entries to dashboard clients."""

import json
import logging
from datetime import datetime, UTC
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open dashboard sockets and fans events out to them.

    Every event carries a monotonically increasing ``seq`` so a client can
    tell when it missed something and should re-read ``/api/session``.
    """

    def __init__(self):
        self.active_connections: list[WebSocket] = []
        self._seq = 0

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.debug(f"Dashboard client connected ({self.connection_count} open)")

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    @property
    def connection_count(self) -> int:
        return len(self.active_connections)

    def _encode(self, event_type: str, data: dict[str, Any]) -> str:
        self._seq += 1
        # Japanese content is sent as-is rather than \u-escaped
        return json.dumps({
            "type": event_type,
            "seq": self._seq,
            "data": data,
            "timestamp": datetime.now(UTC).isoformat(),
        }, ensure_ascii=False)

    async def _send(self, websocket: WebSocket, message: str) -> bool:
        try:
            await websocket.send_text(message)
        except Exception as e:
            logger.debug(f"Dropping dashboard client after failed send: {e}")
            self.disconnect(websocket)
            return False
        return True

    async def broadcast(self, event_type: str, data: dict[str, Any]) -> None:
        """Send one event to every open client.

        Args:
            event_type: 'session_update' or 'conversation_entry'
            data: Event payload
        """
        if not self.active_connections:
            return
        message = self._encode(event_type, data)
        for websocket in list(self.active_connections):
            await self._send(websocket, message)

    async def send_to_one(
        self,
        websocket: WebSocket,
        event_type: str,
        data: dict[str, Any]
    ) -> bool:
        """Send an event to a single client; False if it had gone away."""
        return await self._send(websocket, self._encode(event_type, data))

    async def broadcast_session_update(self, change: str, snapshot: dict[str, Any]) -> None:
        """Publish the session snapshot after a store mutation named ``change``."""
        await self.broadcast("session_update", {"change": change, "session": snapshot})

    async def broadcast_conversation_entry(self, entry_dict: dict[str, Any]) -> None:
        await self.broadcast("conversation_entry", entry_dict)
