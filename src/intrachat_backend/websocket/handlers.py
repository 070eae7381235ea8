"""
WebSocket event handlers.

Handles incoming client events and dispatches appropriate actions.
"""

import logging

from intrachat_backend.exceptions import JoinFailedException, RealtimeException
from intrachat_backend.websocket.connection import Connection
from intrachat_backend.websocket.connection_manager import ConnectionManager
from intrachat_types.websocket import (
    parse_client_event,
    WSChatJoin,
    WSChatLeave,
    WSMessageSend,
    WSTypingStart,
    WSTypingStop,
    WSPing,
    WSChatJoined,
    WSChatLeft,
    WSPong,
    WSError,
)

logger = logging.getLogger(__name__)


async def handle_client_message(manager: ConnectionManager, connection: Connection, raw_data) -> None:
    """
    Handle an incoming message from a WebSocket client.

    Parses the event and dispatches to the appropriate handler. Operation
    errors are reported to the client; the connection stays open.

    Args:
        manager: Connection manager owning the connection
        connection: The WebSocket connection
        raw_data: Decoded JSON frame from the client
    """
    event = parse_client_event(raw_data)

    if event is None:
        event_type = raw_data.get("type", "missing") if isinstance(raw_data, dict) else "missing"
        await manager.send_to_connection(connection, WSError(
            code="INVALID_EVENT",
            message=f"Unknown or invalid event type: {event_type}"
        ))
        return

    if not connection.is_active:
        logger.debug(f"Ignoring {event.type} on inactive connection {connection.connection_id}")
        return

    try:
        if isinstance(event, WSChatJoin):
            await handle_join(manager, connection, event)

        elif isinstance(event, WSChatLeave):
            await handle_leave(manager, connection, event)

        elif isinstance(event, WSMessageSend):
            await handle_send(manager, connection, event)

        elif isinstance(event, WSTypingStart):
            await manager.typing.set_typing(connection, event.chat_id, True)

        elif isinstance(event, WSTypingStop):
            await manager.typing.set_typing(connection, event.chat_id, False)

        elif isinstance(event, WSPing):
            await handle_ping(manager, connection)

    except RealtimeException as e:
        logger.info(f"Event {event.type} from user={connection.user_id} rejected: {e.error_code} ({e.detail})")
        await manager.send_to_connection(connection, e.to_error_event())

    except Exception as e:
        logger.exception(f"Error handling event {event.type}: {e}")
        await manager.send_to_connection(connection, WSError(
            code="HANDLER_ERROR",
            message="Internal error while handling event"
        ))


async def handle_join(manager: ConnectionManager, connection: Connection, event: WSChatJoin):
    """
    Handle chat join request.

    Store failures surface as JOIN_FAILED; denials as CHAT_ACCESS_DENIED.
    """
    try:
        await manager.rooms.join(connection, event.chat_id)
    except RealtimeException:
        raise
    except Exception as e:
        logger.error(f"Join of {event.chat_id} by user={connection.user_id} failed: {e}")
        raise JoinFailedException(str(e)) from e

    await manager.send_to_connection(connection, WSChatJoined(chat_id=event.chat_id))


async def handle_leave(manager: ConnectionManager, connection: Connection, event: WSChatLeave):
    """Handle chat leave request. Always confirmed, even for non-members."""
    manager.rooms.leave(connection, event.chat_id)
    await manager.send_to_connection(connection, WSChatLeft(chat_id=event.chat_id))


async def handle_send(manager: ConnectionManager, connection: Connection, event: WSMessageSend):
    await manager.ingress.submit(
        connection,
        event.chat_id,
        event.content,
        event.message_type,
        event.reply_to_id,
    )


async def handle_ping(manager: ConnectionManager, connection: Connection):
    """Handle ping (keep-alive)."""
    await manager.send_to_connection(connection, WSPong())
