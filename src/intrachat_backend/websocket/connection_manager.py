"""
WebSocket Connection Manager.

Owns every per-process realtime component and drives the connection
lifecycle: authenticate, register presence, announce, serve events, tear
down. Components are injected so tests can build isolated instances.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from intrachat_backend.exceptions import ConnectionLimitException
from intrachat_backend.repositories.base import RealtimeStore
from intrachat_backend.websocket.auth import Handshake, SessionAuthenticator
from intrachat_backend.websocket.broadcast import BroadcastResult, fan_out
from intrachat_backend.websocket.connection import Connection, ConnectionState, ConnectionTransport
from intrachat_backend.websocket.ingress import DEFAULT_MAX_CONTENT_LENGTH, MessageIngressPipeline
from intrachat_backend.websocket.presence import PresenceRegistry
from intrachat_backend.websocket.rooms import RoomMembershipManager
from intrachat_backend.websocket.typing_indicators import TypingIndicatorTracker
from intrachat_types.auth import Identity
from intrachat_types.websocket import WSUserOffline, WSUserOnline

logger = logging.getLogger(__name__)


@dataclass
class ConnectionLimits:
    max_per_user: int = 10
    max_total: int = 10000


class ConnectionManager:
    """
    Manages WebSocket connections, presence and room fan-out.

    Features:
    - Track active connections per user
    - Enforce per-user and total connection limits
    - Announce online/offline on the first/last connection of a user
    - Route room events through the membership manager
    """

    def __init__(
        self,
        store: RealtimeStore,
        authenticator: SessionAuthenticator,
        presence: Optional[PresenceRegistry] = None,
        limits: Optional[ConnectionLimits] = None,
        send_timeout: Optional[float] = 5.0,
        max_message_length: int = DEFAULT_MAX_CONTENT_LENGTH,
    ):
        self.store = store
        self.authenticator = authenticator
        self.presence = presence or PresenceRegistry()
        self.limits = limits or ConnectionLimits()
        self.send_timeout = send_timeout

        self.rooms = RoomMembershipManager(store.rooms, store.membership, send_timeout=send_timeout)
        self.ingress = MessageIngressPipeline(
            self.rooms,
            store.messages,
            store.rooms,
            max_content_length=max_message_length,
        )
        self.typing = TypingIndicatorTracker(self.rooms)

        self._connections: Dict[str, Connection] = {}  # connection_id -> connection

    async def authenticate(self, handshake: Handshake) -> Identity:
        return await self.authenticator.authenticate_handshake(handshake)

    async def connect(self, transport: ConnectionTransport, identity: Identity) -> Connection:
        """
        Register an authenticated transport and move it to ``ACTIVE``.

        The online announcement goes out before the connection is marked
        active, and only when this is the user's first connection.

        Raises:
            ConnectionLimitException: If connection limits are exceeded
        """
        user_id = identity.id

        total_connections = self.get_connection_count()
        if total_connections >= self.limits.max_total:
            logger.warning(f"Total connection limit reached: {total_connections}/{self.limits.max_total}")
            raise ConnectionLimitException("Server connection limit reached")

        user_connections = self.presence.connection_count_for(user_id)
        if user_connections >= self.limits.max_per_user:
            logger.warning(f"User {user_id} connection limit reached: {user_connections}/{self.limits.max_per_user}")
            raise ConnectionLimitException(f"Too many connections (max {self.limits.max_per_user})")

        connection = Connection(transport=transport, identity=identity)
        self._connections[connection.connection_id] = connection
        came_online = self.presence.register(user_id, connection.connection_id)

        if came_online:
            await self.broadcast_all(
                WSUserOnline(user_id=user_id, user=identity.summary()),
                exclude_user_id=user_id,
            )

        # Teardown may have started while the announcement was in flight
        if connection.state == ConnectionState.AUTHENTICATED:
            connection.state = ConnectionState.ACTIVE

        logger.info(
            f"WebSocket connected: user={user_id}, connection={connection.connection_id}, "
            f"user_connections={self.presence.connection_count_for(user_id)}, total={self.get_connection_count()}"
        )
        return connection

    async def disconnect(self, connection: Connection) -> None:
        """
        Tear down a connection. Safe to call more than once.

        Presence and memberships are removed before the first suspension
        point; the offline announcement follows only when the user has no
        connection left.
        """
        if connection.state == ConnectionState.CLOSED:
            return
        connection.state = ConnectionState.CLOSED

        self._connections.pop(connection.connection_id, None)
        left_rooms = self.rooms.leave_all(connection)
        user_id = self.presence.deregister(connection.connection_id)

        logger.info(
            f"WebSocket disconnected: user={connection.user_id}, connection={connection.connection_id}, "
            f"rooms_left={len(left_rooms)}"
        )

        if user_id is not None and not self.presence.is_online(user_id):
            await self.broadcast_all(WSUserOffline(user_id=user_id), exclude_user_id=user_id)

    async def close_connection(self, connection: Connection, code: int = 1000, reason: Optional[str] = None) -> None:
        """Close the transport (bounded wait) and tear the connection down."""
        try:
            await asyncio.wait_for(connection.transport.close(code=code, reason=reason), timeout=1.0)
        except asyncio.TimeoutError:
            logger.warning(f"Timeout closing connection {connection.connection_id}")
        except Exception as e:
            logger.debug(f"Error closing connection {connection.connection_id}: {e}")
        await self.disconnect(connection)

    async def disconnect_user(self, user_id: str, code: int = 4001, reason: str = "Session revoked") -> int:
        """
        Force-close every connection of a user.

        Returns:
            Number of connections closed
        """
        connections = self.connections_for_user(user_id)
        for connection in connections:
            await self.close_connection(connection, code=code, reason=reason)
        if connections:
            logger.info(f"Force-disconnected user {user_id}: {len(connections)} connection(s)")
        return len(connections)

    async def stop(self) -> None:
        """Close all connections with timeout and drop all ephemeral state."""
        logger.info("Stopping ConnectionManager...")

        connections = list(self._connections.values())
        for connection in connections:
            connection.state = ConnectionState.CLOSED

        close_tasks = [self._close_transport_safe(c) for c in connections]
        if close_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*close_tasks, return_exceptions=True),
                    timeout=3.0
                )
            except asyncio.TimeoutError:
                logger.warning(f"Timeout closing {len(close_tasks)} WebSocket connections")

        for connection in connections:
            self.rooms.leave_all(connection)
            self.presence.deregister(connection.connection_id)
        self._connections.clear()
        logger.info("ConnectionManager stopped")

    async def _close_transport_safe(self, connection: Connection) -> None:
        try:
            await asyncio.wait_for(connection.transport.close(code=1001, reason="Server shutdown"), timeout=1.0)
        except asyncio.TimeoutError:
            logger.debug(f"Timeout closing connection {connection.connection_id}")
        except Exception as e:
            logger.debug(f"Error closing connection {connection.connection_id}: {e}")

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def connections_for_user(self, user_id: str) -> List[Connection]:
        return [
            self._connections[cid]
            for cid in self.presence.connections_for(user_id)
            if cid in self._connections
        ]

    async def send_to_connection(self, connection: Connection, event) -> bool:
        return await connection.send(event, timeout=self.send_timeout)

    async def send_to_user(self, user_id: str, event) -> BroadcastResult:
        """Send an event to every connection of one user."""
        return await fan_out(self.connections_for_user(user_id), event, timeout=self.send_timeout)

    async def broadcast_all(self, event, exclude_user_id: Optional[str] = None) -> BroadcastResult:
        """Send an event to every live connection, optionally skipping one user."""
        targets = [
            c for c in self._connections.values()
            if c.state != ConnectionState.CLOSED and c.user_id != exclude_user_id
        ]
        return await fan_out(targets, event, timeout=self.send_timeout)

    def get_connection_count(self) -> int:
        """Get total number of active connections."""
        return len(self._connections)

    def get_user_count(self) -> int:
        """Get number of unique connected users."""
        return self.presence.get_user_count()

    def get_stats(self) -> dict:
        return {
            "connections": self.get_connection_count(),
            "online_users": self.get_user_count(),
            "rooms": self.rooms.get_room_count(),
        }
