"""
WebSocket router and endpoint.

Provides the FastAPI WebSocket endpoint for real-time communication.
"""

import json
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from intrachat_backend.exceptions import RealtimeException
from intrachat_backend.websocket.auth import BEARER_SUBPROTOCOL, Handshake, token_from_subprotocols
from intrachat_backend.websocket.connection_manager import ConnectionManager
from intrachat_backend.websocket.handlers import handle_client_message
from intrachat_types.websocket import WSConnected, WSError

logger = logging.getLogger(__name__)

ws_router = APIRouter()


def build_handshake(websocket: WebSocket) -> Handshake:
    subprotocols = websocket.scope.get("subprotocols") or []
    return Handshake(
        auth=token_from_subprotocols(subprotocols),
        headers=dict(websocket.headers),
        query=dict(websocket.query_params),
    )


def _accept_subprotocol(websocket: WebSocket):
    subprotocols = websocket.scope.get("subprotocols") or []
    for item in subprotocols:
        if item.strip().lower() == BEARER_SUBPROTOCOL:
            return item
    return None


async def _reject(websocket: WebSocket, error: RealtimeException):
    """Report a fatal handshake error, then close with its close code."""
    try:
        if websocket.client_state == WebSocketState.CONNECTING:
            await websocket.accept(subprotocol=_accept_subprotocol(websocket))
        await websocket.send_json(error.to_error_event().model_dump(mode="json"))
        await websocket.close(code=error.close_code or 1008, reason=error.client_message)
    except Exception as e:
        logger.debug(f"Could not deliver rejection to client: {e}")


@ws_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Main WebSocket endpoint for real-time chat.

    Authentication (first non-empty wins):
        - Subprotocols ["bearer", <token>]
        - Authorization: Bearer <token>
        - ?token=<token>

    Connection Flow:
        1. Client connects with token
        2. Server validates token and accepts connection
        3. Server sends system:connected with user info and online users
        4. Client joins chats via chat:join
        5. Client/server exchange events until either side closes

    Client -> Server Events:
        - chat:join / chat:leave {"chat_id": "..."}
        - message:send {"chat_id": "...", "content": "...", "message_type": "text", "reply_to_id": null}
        - typing:start / typing:stop {"chat_id": "..."}
        - system:ping

    Server -> Client Events:
        - system:connected, system:pong, system:error
        - chat:joined, chat:left
        - message:new
        - user:online, user:offline
        - typing:start, typing:stop
    """
    manager: ConnectionManager = websocket.app.state.connection_manager
    connection = None

    try:
        identity = await manager.authenticate(build_handshake(websocket))

        await websocket.accept(subprotocol=_accept_subprotocol(websocket))

        connection = await manager.connect(websocket, identity)

        await manager.send_to_connection(connection, WSConnected(
            connection_id=connection.connection_id,
            user_id=identity.id,
            user=identity.summary(),
            online_user_ids=sorted(manager.presence.online_user_ids()),
        ))

        while True:
            message = await websocket.receive()

            if message["type"] == "websocket.disconnect":
                break

            if message["type"] != "websocket.receive":
                continue

            text = message.get("text")
            if text is None:
                continue

            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                logger.warning(f"WebSocket invalid JSON from user={identity.id}: {e}")
                await manager.send_to_connection(connection, WSError(
                    code="INVALID_JSON",
                    message="Message must be valid JSON"
                ))
                continue

            await handle_client_message(manager, connection, data)

    except WebSocketDisconnect:
        pass

    except RealtimeException as e:
        # Only connection-fatal errors escape the handlers
        logger.warning(f"WebSocket rejected: {e.error_code} ({e.detail})")
        await _reject(websocket, e)

    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
        try:
            await websocket.close(code=1011, reason="Internal error")
        except Exception:
            logger.debug("WebSocket already closed")

    finally:
        if connection is not None:
            await manager.disconnect(connection)
