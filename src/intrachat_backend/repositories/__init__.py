"""
Store layer for the realtime core.

``base`` defines the async contracts; the remaining modules implement them
on SQLAlchemy.
"""

from typing import Callable, Optional
from sqlalchemy.orm import Session

from .base import (
    MembershipStore,
    MessageStore,
    RealtimeStore,
    RoomStore,
    SqlRepository,
    UserStore,
)
from .chat import ChatMembershipRepository, ChatRepository
from .message import MessageRepository
from .user import UserRepository


def build_sqlalchemy_store(session_factory: Optional[Callable[[], Session]] = None) -> RealtimeStore:
    """Wire all store contracts to the SQLAlchemy repositories."""
    return RealtimeStore(
        users=UserRepository(session_factory),
        rooms=ChatRepository(session_factory),
        membership=ChatMembershipRepository(session_factory),
        messages=MessageRepository(session_factory),
    )


__all__ = [
    "MembershipStore",
    "MessageStore",
    "RealtimeStore",
    "RoomStore",
    "SqlRepository",
    "UserStore",
    "ChatMembershipRepository",
    "ChatRepository",
    "MessageRepository",
    "UserRepository",
    "build_sqlalchemy_store",
]
