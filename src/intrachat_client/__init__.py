"""Asyncio client for the intrachat realtime endpoint."""

from intrachat_client.exceptions import (
    AuthenticationError,
    ConnectionInProgressError,
    ConnectionLostError,
    RealtimeClientError,
)
from intrachat_client.realtime import (
    ConnectionStatus,
    PresenceUpdate,
    RealtimeClient,
    RoomUpdate,
    StatusEvent,
    TypingUpdate,
)

__all__ = [
    "AuthenticationError",
    "ConnectionInProgressError",
    "ConnectionLostError",
    "RealtimeClientError",
    "ConnectionStatus",
    "PresenceUpdate",
    "RealtimeClient",
    "RoomUpdate",
    "StatusEvent",
    "TypingUpdate",
]
