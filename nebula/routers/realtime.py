import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from nebula.data.workspace_manager import WorkspaceManager, get_workspace_manager
from nebula.utils.websocket_manager import build_event, websocket_manager

router = APIRouter(prefix="/ws", tags=["realtime"])

logger = logging.getLogger(__name__)


@router.websocket("/workspaces/{workspace_id}")
async def workspace_socket(
    websocket: WebSocket,
    workspace_id: str,
    manager: WorkspaceManager = Depends(get_workspace_manager),
) -> None:
    """
    Invalidation channel for one workspace. Clients refetch over REST when an event arrives.
    """
    workspace = manager.get_workspace(workspace_id)
    if not workspace:
        logger.error("Workspace %s not found for WebSocket connection", workspace_id)
        await websocket.close(code=1008, reason="Workspace not found")
        return
    workspace_id = workspace.id

    participant_id: Optional[str] = websocket.query_params.get("participantId")
    participant = manager.get_participant(participant_id) if participant_id else None
    if participant is None or participant.workspace_id != workspace_id:
        participant_id = None

    connection_id = await websocket_manager.connect(
        websocket, workspace_id, participant_id=participant_id
    )
    if participant_id:
        manager.set_participant_online(participant_id, True)

    await websocket_manager.send_personal_message(
        workspace_id,
        connection_id,
        build_event(
            "connection_ack",
            {"connectionId": connection_id, "participantId": participant_id},
            workspace_id=workspace_id,
            participant_id=participant_id,
        ),
    )
    await websocket_manager.broadcast(
        workspace_id,
        build_event(
            "participant_joined",
            {"connectionId": connection_id, "participantId": participant_id},
            workspace_id=workspace_id,
            participant_id=participant_id,
        ),
        skip_connection=connection_id,
    )

    try:
        while True:
            message = await websocket.receive_json()
            message_type = message.get("type") if isinstance(message, dict) else None

            if message_type == "ping":
                await websocket_manager.send_personal_message(
                    workspace_id,
                    connection_id,
                    build_event(
                        "pong",
                        {"timestamp": datetime.now(timezone.utc).isoformat()},
                        workspace_id=workspace_id,
                        participant_id=participant_id,
                    ),
                )
            else:
                await websocket_manager.send_personal_message(
                    workspace_id,
                    connection_id,
                    build_event(
                        "error",
                        {"message": f"Unknown message type '{message_type}'"},
                        workspace_id=workspace_id,
                        participant_id=participant_id,
                    ),
                )
    except WebSocketDisconnect:
        logger.debug(
            "WebSocketDisconnect: workspace_id=%s connection_id=%s",
            workspace_id,
            connection_id,
        )
    finally:
        websocket_manager.disconnect(workspace_id, connection_id)
        if participant_id:
            manager.set_participant_online(participant_id, False)
        await websocket_manager.broadcast(
            workspace_id,
            build_event(
                "participant_left",
                {"connectionId": connection_id, "participantId": participant_id},
                workspace_id=workspace_id,
                participant_id=participant_id,
            ),
        )
