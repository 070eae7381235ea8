"""Intrachat Types - Pydantic DTOs shared by the realtime server and its clients."""

__version__ = "0.1.0"

from .auth import Identity, UserSummary
from .messages import ChatMessage, MessageReplyTo, MessageType, RoomMeta

__all__ = [
    "Identity",
    "UserSummary",
    "ChatMessage",
    "MessageReplyTo",
    "MessageType",
    "RoomMeta",
]
