"""WebSocket connection manager — pushes EngineResults to a character's watchers."""

from __future__ import annotations

import uuid
from collections import defaultdict

from fastapi import WebSocket

from app.models.result import EngineResult


class ConnectionManager:
    """Manages WebSocket connections grouped by character_id."""

    def __init__(self) -> None:
        self._connections: dict[str, dict[str, WebSocket]] = defaultdict(dict)

    async def connect(self, character_id: str, websocket: WebSocket) -> str:
        """Accept a socket and return its connection id."""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self._connections[character_id][connection_id] = websocket
        return connection_id

    def disconnect(self, character_id: str, connection_id: str) -> None:
        connections = self._connections.get(character_id)
        if connections is None:
            return
        connections.pop(connection_id, None)
        if not connections:
            del self._connections[character_id]

    async def broadcast(self, character_id: str, result: EngineResult) -> None:
        """Send an EngineResult to every socket watching a character."""
        connections = self._connections.get(character_id, {})
        dead: list[str] = []
        payload = result.model_dump_json()
        for connection_id, ws in list(connections.items()):
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(connection_id)
        for cid in dead:
            self.disconnect(character_id, cid)

    def connection_count(self, character_id: str) -> int:
        return len(self._connections.get(character_id, {}))


# Module-level singleton
ws_manager = ConnectionManager()
