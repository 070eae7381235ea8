"""
Room membership and broadcast groups.

Authorization is re-checked against the store on every join and never
cached beyond the connection. The in-memory index only records which live
connections receive which room's broadcasts.
"""

import logging
from typing import Dict, List, Optional, Set

from intrachat_backend.exceptions import ForbiddenException, NotFoundException
from intrachat_backend.repositories.base import MembershipStore, RoomStore
from intrachat_backend.websocket.broadcast import BroadcastGroup, BroadcastResult
from intrachat_backend.websocket.connection import Connection
from intrachat_types.messages import RoomMeta

logger = logging.getLogger(__name__)


class RoomMembershipManager:
    """Authorizes joins and owns one ``BroadcastGroup`` per occupied room."""

    def __init__(
        self,
        rooms: RoomStore,
        membership: MembershipStore,
        send_timeout: Optional[float] = None,
    ):
        self.rooms = rooms
        self.membership = membership
        self.send_timeout = send_timeout
        self._groups: Dict[str, BroadcastGroup] = {}  # room_id -> group

    async def join(self, connection: Connection, room_id: str) -> RoomMeta:
        """
        Subscribe a connection to a room after checking access.

        Raises:
            NotFoundException: Room does not exist or is archived
            ForbiddenException: User may not join, or the connection closed meanwhile
        """
        room = await self.rooms.find_active_by_id(room_id)
        if room is None or room.is_archived:
            logger.warning(f"User {connection.user_id} denied join to {room_id}: not found")
            raise NotFoundException(f"Chat {room_id} not found or archived")

        authorized = await self.membership.is_authorized(connection.user_id, room_id)
        if not authorized:
            logger.warning(f"User {connection.user_id} denied join to {room_id}: not authorized")
            raise ForbiddenException(f"User {connection.user_id} is not authorized for chat {room_id}")

        # The connection may have been torn down while the store was queried
        if not connection.is_active:
            raise ForbiddenException(f"Connection {connection.connection_id} closed during join")

        group = self._groups.get(room_id)
        if group is None:
            group = BroadcastGroup(room_id, send_timeout=self.send_timeout)
            self._groups[room_id] = group
        group.add(connection)
        connection.rooms.add(room_id)

        logger.debug(f"Connection {connection.connection_id} (user={connection.user_id}) joined {room_id}")
        return room

    def leave(self, connection: Connection, room_id: str) -> bool:
        """
        Remove a connection from a room. Leaving a room twice is a no-op.

        Returns:
            True if the connection was a member
        """
        connection.rooms.discard(room_id)

        group = self._groups.get(room_id)
        if group is None:
            return False

        removed = group.discard(connection.connection_id)
        if not len(group):
            del self._groups[room_id]

        if removed:
            logger.debug(f"Connection {connection.connection_id} (user={connection.user_id}) left {room_id}")
        return removed

    def leave_all(self, connection: Connection) -> List[str]:
        """Drop every membership of a connection, returns the rooms it was in."""
        left = []
        for room_id in list(connection.rooms):
            if self.leave(connection, room_id):
                left.append(room_id)
        connection.rooms.clear()
        return left

    def is_member(self, connection: Connection, room_id: str) -> bool:
        group = self._groups.get(room_id)
        return group is not None and connection.connection_id in group

    def members_of(self, room_id: str) -> Set[str]:
        group = self._groups.get(room_id)
        return group.connection_ids() if group is not None else set()

    def group(self, room_id: str) -> Optional[BroadcastGroup]:
        return self._groups.get(room_id)

    async def broadcast(self, room_id: str, event, exclude: Optional[Set[str]] = None) -> BroadcastResult:
        """Send an event to the room's current members."""
        group = self._groups.get(room_id)
        if group is None:
            return BroadcastResult()
        return await group.send_all(event, exclude=exclude)

    def get_room_count(self) -> int:
        return len(self._groups)
