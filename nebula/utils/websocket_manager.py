from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass
class ConnectionInfo:
    """Metadata describing a single workspace WebSocket connection."""

    id: str
    websocket: WebSocket
    participant_id: Optional[str] = None

    async def send_json(self, message: Dict[str, Any]) -> None:
        await self.websocket.send_json(message)


def build_event(
    event_type: str,
    payload: Any,
    *,
    workspace_id: str,
    participant_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Shape an invalidation event the way every workspace channel message looks."""
    return {
        "type": event_type,
        "payload": payload,
        "meta": {
            "workspaceId": workspace_id,
            "participantId": participant_id,
            "sentAt": datetime.now(timezone.utc).isoformat(),
        },
    }


class WebSocketManager:
    def __init__(self):
        # Key: workspace_id, Value: {connection_id: ConnectionInfo}
        self.active_connections: Dict[str, Dict[str, ConnectionInfo]] = {}

    async def connect(
        self,
        websocket: WebSocket,
        workspace_id: str,
        *,
        participant_id: Optional[str] = None,
    ) -> str:
        """Accept a socket for a workspace channel and return its connection id."""
        await websocket.accept()
        connection_id = str(uuid4())
        workspace_connections = self.active_connections.setdefault(workspace_id, {})
        workspace_connections[connection_id] = ConnectionInfo(
            id=connection_id,
            websocket=websocket,
            participant_id=participant_id,
        )
        logger.debug(
            "WebSocket connected: workspace_id=%s connection_id=%s participant_id=%s",
            workspace_id,
            connection_id,
            participant_id,
        )
        return connection_id

    def disconnect(self, workspace_id: str, connection_id: str) -> None:
        workspace_connections = self.active_connections.get(workspace_id)
        if not workspace_connections:
            return

        if workspace_connections.pop(connection_id, None) is not None:
            logger.debug(
                "WebSocket disconnected: workspace_id=%s connection_id=%s",
                workspace_id,
                connection_id,
            )

        if not workspace_connections:
            self.active_connections.pop(workspace_id, None)

    async def broadcast(
        self,
        workspace_id: str,
        message: Dict[str, Any],
        *,
        skip_connection: Optional[str] = None,
    ) -> None:
        """Send a message to every client on a workspace channel."""
        workspace_connections = self.active_connections.get(workspace_id, {})
        disconnected: list[str] = []

        # Snapshot: disconnect() may run from other handlers while we await sends.
        for connection_id, connection in list(workspace_connections.items()):
            if skip_connection and connection_id == skip_connection:
                continue
            try:
                await connection.send_json(message)
            except Exception:  # pragma: no cover - depends on network
                disconnected.append(connection_id)

        for connection_id in disconnected:
            self.disconnect(workspace_id, connection_id)

    async def publish(
        self,
        workspace_id: str,
        event_type: str,
        payload: Any,
        *,
        participant_id: Optional[str] = None,
    ) -> None:
        await self.broadcast(
            workspace_id,
            build_event(
                event_type,
                payload,
                workspace_id=workspace_id,
                participant_id=participant_id,
            ),
        )

    async def send_personal_message(
        self,
        workspace_id: str,
        connection_id: str,
        message: Dict[str, Any],
    ) -> None:
        connection = self.active_connections.get(workspace_id, {}).get(connection_id)
        if not connection:
            return
        try:
            await connection.send_json(message)
        except Exception:  # pragma: no cover - depends on network
            self.disconnect(workspace_id, connection_id)

    def active_connections_for(self, workspace_id: str) -> Dict[str, ConnectionInfo]:
        return self.active_connections.get(workspace_id, {}).copy()


websocket_manager = WebSocketManager()
