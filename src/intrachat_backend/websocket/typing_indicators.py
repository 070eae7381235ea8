import logging

from intrachat_backend.websocket.connection import Connection
from intrachat_backend.websocket.rooms import RoomMembershipManager
from intrachat_types.websocket import WSTypingStarted, WSTypingStopped

logger = logging.getLogger(__name__)


class TypingIndicatorTracker:
    """
    Relays typing start/stop to the other members of a room.

    Holds no state. Clients own the inactivity timeout and send an
    explicit stop; a client that never does leaves peers with a stale
    indicator until their own timeout fires.
    """

    def __init__(self, rooms: RoomMembershipManager):
        self.rooms = rooms

    async def set_typing(self, connection: Connection, room_id: str, is_typing: bool) -> None:
        """Fire-and-forget. Non-members are ignored and failures are only logged."""
        if not self.rooms.is_member(connection, room_id):
            logger.debug(f"Dropping typing event from non-member {connection.connection_id} for {room_id}")
            return

        if is_typing:
            event = WSTypingStarted(
                chat_id=room_id,
                user_id=connection.user_id,
                user=connection.identity.summary(),
            )
        else:
            event = WSTypingStopped(chat_id=room_id, user_id=connection.user_id)

        try:
            await self.rooms.broadcast(room_id, event, exclude={connection.connection_id})
        except Exception as e:
            logger.error(f"Failed to relay typing event in {room_id}: {e}")
