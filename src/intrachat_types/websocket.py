"""
WebSocket event DTOs for real-time communication.

This module defines the event types for the realtime chat connection.
Events follow a namespaced pattern: "namespace:action"

Namespaces:
- system: Core WebSocket operations (connected, ping, pong, error)
- chat: Room membership (join, leave, joined, left)
- message: Message events (send, new)
- typing: Typing indicators (start, stop)
- user: Presence (online, offline)
"""

from pydantic import BaseModel, Field, ValidationError
from typing import Literal, Optional, Union
from datetime import datetime, timezone

from intrachat_types.auth import UserSummary
from intrachat_types.messages import ChatMessage


# =============================================================================
# Base Event Types
# =============================================================================

class WSEventBase(BaseModel):
    """Base class for all WebSocket events."""
    type: str


# =============================================================================
# Client -> Server Events
# =============================================================================

class WSChatJoin(WSEventBase):
    """Join a chat room to receive its broadcasts."""
    type: Literal["chat:join"] = "chat:join"
    chat_id: str = Field(..., min_length=1, description="Chat to join")


class WSChatLeave(WSEventBase):
    """Leave a chat room."""
    type: Literal["chat:leave"] = "chat:leave"
    chat_id: str = Field(..., min_length=1, description="Chat to leave")


class WSMessageSend(WSEventBase):
    """Submit a chat message."""
    type: Literal["message:send"] = "message:send"
    chat_id: str = Field(..., min_length=1, description="Target chat")
    content: str = Field(..., description="Message body")
    message_type: Optional[str] = Field(None, description="text, image, file, system or announcement")
    reply_to_id: Optional[str] = Field(None, description="ID of the message being replied to")


class WSTypingStart(WSEventBase):
    """User started typing in a chat."""
    type: Literal["typing:start"] = "typing:start"
    chat_id: str = Field(..., min_length=1, description="Chat where user is typing")


class WSTypingStop(WSEventBase):
    """User stopped typing in a chat."""
    type: Literal["typing:stop"] = "typing:stop"
    chat_id: str = Field(..., min_length=1, description="Chat where user stopped typing")


class WSPing(WSEventBase):
    """Keep-alive ping from client."""
    type: Literal["system:ping"] = "system:ping"


# =============================================================================
# Server -> Client Events
# =============================================================================

class WSConnected(WSEventBase):
    """Connection established confirmation."""
    type: Literal["system:connected"] = "system:connected"
    connection_id: str = Field(..., description="Server-side ID of this connection")
    user_id: str = Field(..., description="ID of the authenticated user")
    user: Optional[UserSummary] = None
    online_user_ids: list[str] = Field(default_factory=list, description="Users online at connect time")


class WSChatJoined(WSEventBase):
    """Confirmation of a successful join."""
    type: Literal["chat:joined"] = "chat:joined"
    chat_id: str


class WSChatLeft(WSEventBase):
    """Confirmation of a leave."""
    type: Literal["chat:left"] = "chat:left"
    chat_id: str


class WSMessageNew(WSEventBase):
    """New message persisted in a chat."""
    type: Literal["message:new"] = "message:new"
    chat_id: str = Field(..., description="Chat the message was posted to")
    data: ChatMessage


class WSUserOnline(WSEventBase):
    """A user opened their first connection."""
    type: Literal["user:online"] = "user:online"
    user_id: str
    user: Optional[UserSummary] = None


class WSUserOffline(WSEventBase):
    """A user closed their last connection."""
    type: Literal["user:offline"] = "user:offline"
    user_id: str


class WSTypingStarted(WSEventBase):
    """Another member started typing."""
    type: Literal["typing:start"] = "typing:start"
    chat_id: str
    user_id: str
    user: Optional[UserSummary] = None


class WSTypingStopped(WSEventBase):
    """Another member stopped typing."""
    type: Literal["typing:stop"] = "typing:stop"
    chat_id: str
    user_id: str


class WSPong(WSEventBase):
    """Keep-alive pong response."""
    type: Literal["system:pong"] = "system:pong"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WSError(WSEventBase):
    """Operation error; the connection stays open unless it is followed by a close."""
    type: Literal["system:error"] = "system:error"
    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")


# =============================================================================
# Union Types for Parsing
# =============================================================================

# All events that can be sent from client to server
ClientEvent = Union[
    WSChatJoin,
    WSChatLeave,
    WSMessageSend,
    WSTypingStart,
    WSTypingStop,
    WSPing,
]

# All events that can be sent from server to client
ServerEvent = Union[
    WSConnected,
    WSChatJoined,
    WSChatLeft,
    WSMessageNew,
    WSUserOnline,
    WSUserOffline,
    WSTypingStarted,
    WSTypingStopped,
    WSPong,
    WSError,
]


# =============================================================================
# Event Type Registry (for handler dispatch)
# =============================================================================

CLIENT_EVENT_TYPES = {
    "chat:join": WSChatJoin,
    "chat:leave": WSChatLeave,
    "message:send": WSMessageSend,
    "typing:start": WSTypingStart,
    "typing:stop": WSTypingStop,
    "system:ping": WSPing,
}

SERVER_EVENT_TYPES = {
    "system:connected": WSConnected,
    "chat:joined": WSChatJoined,
    "chat:left": WSChatLeft,
    "message:new": WSMessageNew,
    "user:online": WSUserOnline,
    "user:offline": WSUserOffline,
    "typing:start": WSTypingStarted,
    "typing:stop": WSTypingStopped,
    "system:pong": WSPong,
    "system:error": WSError,
}


def _parse_event(data, registry: dict):
    if not isinstance(data, dict):
        return None

    event_type = data.get("type")
    if not isinstance(event_type, str) or event_type not in registry:
        return None

    try:
        return registry[event_type].model_validate(data)
    except ValidationError:
        return None


def parse_client_event(data: dict) -> Optional[ClientEvent]:
    """
    Parse incoming client event data into typed event object.

    Args:
        data: Raw event data from WebSocket

    Returns:
        Parsed event object or None if invalid
    """
    return _parse_event(data, CLIENT_EVENT_TYPES)


def parse_server_event(data: dict) -> Optional[ServerEvent]:
    """Parse a server frame on the client side. Returns None for unknown events."""
    return _parse_event(data, SERVER_EVENT_TYPES)
