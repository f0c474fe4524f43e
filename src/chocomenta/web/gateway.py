import time
from typing import Any, Optional

from fastapi import WebSocket
from loguru import logger

from chocomenta.domain.radio.models import SessionId


class BroadcastGateway:
    """Manages WebSocket connections and fans out radio events.

    Delivery is fire-and-forget: a failed send drops that connection and
    the session is resynchronised in full when it connects again.
    """

    def __init__(self):
        self.connections: dict[SessionId, WebSocket] = {}

    async def connect(self, session_id: SessionId, ws: WebSocket) -> None:
        """Accept and store a new WebSocket connection."""
        await ws.accept()
        self.connections[session_id] = ws

    def disconnect(self, session_id: SessionId) -> None:
        """Remove a WebSocket connection."""
        self.connections.pop(session_id, None)

    @staticmethod
    def envelope(event_type: str, data: Any) -> dict:
        return {
            "type": event_type,
            "data": data,
            "ts": time.time(),
        }

    async def send_to(self, session_id: SessionId, event_type: str, data: Any) -> None:
        """Send a message to one session, if it is still connected."""
        conn = self.connections.get(session_id)
        if conn is None:
            return
        try:
            await conn.send_json(self.envelope(event_type, data))
        except Exception:
            logger.debug(f"Dropping dead connection {session_id}")
            self.disconnect(session_id)

    async def broadcast(
        self, event_type: str, data: Any, exclude: Optional[SessionId] = None
    ) -> None:
        """Send a message to all connected sessions except ``exclude``."""
        message = self.envelope(event_type, data)
        dead_connections: list[SessionId] = []

        for session_id, conn in list(self.connections.items()):
            if session_id == exclude:
                continue
            try:
                await conn.send_json(message)
            except Exception:
                dead_connections.append(session_id)

        for session_id in dead_connections:
            logger.debug(f"Dropping dead connection {session_id}")
            self.disconnect(session_id)
