"""
Store contracts consumed by the realtime layer.

The realtime core never talks to the ORM directly. It depends on these four
async contracts, grouped in a ``RealtimeStore``, so tests can substitute
in-memory fakes and the SQLAlchemy adapter can be swapped without touching
connection, membership or ingress logic.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, TypeVar

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from intrachat_backend.database import session_scope
from intrachat_types.auth import Identity
from intrachat_types.messages import ChatMessage, MessageType, RoomMeta

T = TypeVar("T")


class UserStore(Protocol):
    async def find_active_by_id(self, user_id: str) -> Optional[Identity]:
        ...


class RoomStore(Protocol):
    async def find_active_by_id(self, room_id: str) -> Optional[RoomMeta]:
        ...

    async def touch_activity(self, room_id: str) -> None:
        ...


class MembershipStore(Protocol):
    async def is_authorized(self, user_id: str, room_id: str) -> bool:
        ...


class MessageStore(Protocol):
    async def create(
        self,
        room_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType,
        reply_to_id: Optional[str] = None,
    ) -> ChatMessage:
        ...

    async def find_by_id(self, message_id: str) -> Optional[ChatMessage]:
        ...


@dataclass
class RealtimeStore:
    """Bundle of store contracts handed to the ConnectionManager."""
    users: UserStore
    rooms: RoomStore
    membership: MembershipStore
    messages: MessageStore


class SqlRepository:
    """
    Base class for SQLAlchemy-backed stores.

    Each call opens a short-lived session and runs the blocking ORM work in
    the threadpool, so the event loop keeps serving other connections.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _call(self, fn: Callable[..., T], *args: Any) -> T:
        with session_scope(self._session_factory) as db:
            return fn(db, *args)

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        return await run_in_threadpool(self._call, fn, *args)
