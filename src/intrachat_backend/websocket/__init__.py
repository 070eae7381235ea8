"""
WebSocket package for real-time chat.

- Session authentication of the handshake credential
- Presence registry (multi-device aware)
- Room membership with per-room broadcast groups
- Message ingress: validate, persist, broadcast
- Typing indicator relay
"""

from intrachat_backend.websocket.auth import Handshake, SessionAuthenticator, create_access_token
from intrachat_backend.websocket.broadcast import BroadcastGroup, BroadcastResult
from intrachat_backend.websocket.connection import Connection, ConnectionState
from intrachat_backend.websocket.connection_manager import ConnectionLimits, ConnectionManager
from intrachat_backend.websocket.ingress import IngressResult, MessageIngressPipeline
from intrachat_backend.websocket.presence import PresenceRegistry
from intrachat_backend.websocket.rooms import RoomMembershipManager
from intrachat_backend.websocket.typing_indicators import TypingIndicatorTracker

__all__ = [
    "Handshake",
    "SessionAuthenticator",
    "create_access_token",
    "BroadcastGroup",
    "BroadcastResult",
    "Connection",
    "ConnectionState",
    "ConnectionLimits",
    "ConnectionManager",
    "IngressResult",
    "MessageIngressPipeline",
    "PresenceRegistry",
    "RoomMembershipManager",
    "TypingIndicatorTracker",
]
