"""
Process-wide presence index.

Keeps the forward (user -> connections) and reverse (connection -> user)
maps in step. All operations are synchronous and therefore atomic on the
event loop.
"""

import logging
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Source of truth for which users are online and through which connections."""

    def __init__(self):
        self._user_connections: Dict[str, Set[str]] = {}  # user_id -> connection_ids
        self._connection_user: Dict[str, str] = {}  # connection_id -> user_id

    def register(self, user_id: str, connection_id: str) -> bool:
        """
        Record a connection for a user.

        Idempotent per connection id.

        Returns:
            True if this made the user go from offline to online
        """
        owner = self._connection_user.get(connection_id)
        if owner is not None:
            if owner != user_id:
                raise ValueError(f"Connection {connection_id} already registered for another user")
            return False

        connections = self._user_connections.setdefault(user_id, set())
        came_online = not connections
        connections.add(connection_id)
        self._connection_user[connection_id] = user_id
        return came_online

    def deregister(self, connection_id: str) -> Optional[str]:
        """
        Forget a connection.

        Returns:
            The owning user id, or None if the connection was unknown
        """
        user_id = self._connection_user.pop(connection_id, None)
        if user_id is None:
            return None

        connections = self._user_connections.get(user_id)
        if connections is not None:
            connections.discard(connection_id)
            if not connections:
                del self._user_connections[user_id]
        return user_id

    def is_online(self, user_id: str) -> bool:
        return user_id in self._user_connections

    def connections_for(self, user_id: str) -> Set[str]:
        return set(self._user_connections.get(user_id, ()))

    def user_for(self, connection_id: str) -> Optional[str]:
        return self._connection_user.get(connection_id)

    def connection_count_for(self, user_id: str) -> int:
        return len(self._user_connections.get(user_id, ()))

    def online_user_ids(self) -> Set[str]:
        return set(self._user_connections)

    def get_connection_count(self) -> int:
        return len(self._connection_user)

    def get_user_count(self) -> int:
        return len(self._user_connections)
