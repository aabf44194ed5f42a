import json
import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import HTTPException, Query, WebSocket, WebSocketDisconnect

from codeduel.api.websocket.manager import ConnectionManager
from codeduel.core.security import user_id_from_token
from codeduel.services.realtime import hub

logger = logging.getLogger(__name__)

manager = ConnectionManager(hub)


async def handle_message(connection_id: UUID, message: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Handle an incoming WebSocket message."""
    msg_type = message.get("type")

    if msg_type == "ping":
        return {"type": "pong"}

    if msg_type in ("subscribe", "unsubscribe"):
        room_id = message.get("room_id")
        if not room_id:
            return {"type": "error", "message": "Missing room_id"}
        try:
            room_uuid = UUID(str(room_id))
        except ValueError:
            return {"type": "error", "message": "Invalid room_id"}

        if msg_type == "subscribe":
            await manager.subscribe(connection_id, room_uuid)
            return {"type": "subscribed", "room_id": str(room_uuid)}
        await manager.unsubscribe(connection_id, room_uuid)
        return {"type": "unsubscribed", "room_id": str(room_uuid)}

    return {"type": "error", "message": f"Unknown message type: {msg_type}"}


async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    """Change feed for room and participant rows."""
    try:
        user_id = user_id_from_token(token)
    except HTTPException:
        await websocket.close(code=4001, reason="Invalid token")
        return

    conn = await manager.connect(websocket, user_id)

    try:
        await websocket.send_json({"type": "connected", "user_id": str(user_id)})

        while True:
            try:
                data = await websocket.receive_text()
                message = json.loads(data)
                if not isinstance(message, dict):
                    raise ValueError("message must be an object")

                response = await handle_message(conn.connection_id, message)
                if response:
                    await websocket.send_json(response)

            except ValueError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})

    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(conn.connection_id)
        logger.debug(f"Realtime connection closed for {user_id}")
