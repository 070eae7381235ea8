"""Pytest configuration and fixtures for the realtime backend tests."""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

import pytest

from intrachat_backend.repositories.base import RealtimeStore
from intrachat_backend.websocket.auth import SessionAuthenticator
from intrachat_backend.websocket.connection_manager import ConnectionLimits, ConnectionManager
from intrachat_types.auth import Identity
from intrachat_types.messages import ChatMessage, MessageType, RoomMeta

JWT_SECRET = "test-secret"
JWT_ISSUER = "internal-chat-api"
JWT_AUDIENCE = "internal-chat-app"


# ============================================================================
# Transport
# ============================================================================


class RecordingTransport:
    """Stands in for a fastapi WebSocket and records every frame sent."""

    def __init__(self, fail: bool = False, delay: Optional[float] = None):
        self.sent: List[dict] = []
        self.closed: Optional[Tuple[int, Optional[str]]] = None
        self.fail = fail
        self.delay = delay

    async def send_json(self, data):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("transport broken")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        self.closed = (code, reason)

    def of_type(self, event_type: str) -> List[dict]:
        return [frame for frame in self.sent if frame.get("type") == event_type]

    def clear(self):
        self.sent.clear()


# ============================================================================
# In-memory stores
# ============================================================================


class FakeUserStore:
    def __init__(self, users: Dict[str, Identity]):
        self.users = users

    async def find_active_by_id(self, user_id: str) -> Optional[Identity]:
        return self.users.get(user_id)


class FakeRoomStore:
    def __init__(self, rooms: Dict[str, RoomMeta]):
        self.rooms = rooms
        self.touched: List[str] = []
        self.touch_error: Optional[Exception] = None

    async def find_active_by_id(self, room_id: str) -> Optional[RoomMeta]:
        room = self.rooms.get(room_id)
        if room is None or room.is_archived:
            return None
        return room

    async def touch_activity(self, room_id: str) -> None:
        if self.touch_error is not None:
            raise self.touch_error
        self.touched.append(room_id)


class FakeMembershipStore:
    def __init__(self, allowed: Set[Tuple[str, str]]):
        self.allowed = allowed
        self.calls: List[Tuple[str, str]] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def is_authorized(self, user_id: str, room_id: str) -> bool:
        self.calls.append((user_id, room_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return (user_id, room_id) in self.allowed


class FakeMessageStore:
    def __init__(self, users: Dict[str, Identity]):
        self.users = users
        self.messages: Dict[str, ChatMessage] = {}
        self.create_calls: List[dict] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def create(self, room_id, sender_id, content, message_type: MessageType, reply_to_id=None) -> ChatMessage:
        self.create_calls.append({
            "room_id": room_id,
            "sender_id": sender_id,
            "content": content,
            "message_type": message_type,
            "reply_to_id": reply_to_id,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

        sender = self.users.get(sender_id)
        message = ChatMessage(
            id=f"msg-{len(self.messages) + 1}",
            chat_id=room_id,
            sender_id=sender_id,
            content=content,
            type=message_type,
            created_at=datetime.now(timezone.utc),
            reply_to_id=reply_to_id,
            sender=sender.summary() if sender else None,
        )
        self.messages[message.id] = message
        return message

    async def find_by_id(self, message_id: str) -> Optional[ChatMessage]:
        return self.messages.get(message_id)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def alice():
    return Identity(id="user-alice", email="alice@corp.test", first_name="Alice", last_name="Archer", roles=["member"])


@pytest.fixture
def bob():
    return Identity(id="user-bob", email="bob@corp.test", first_name="Bob", roles=["member"])


@pytest.fixture
def carol():
    return Identity(id="user-carol", email="carol@corp.test", roles=["admin"])


@pytest.fixture
def rooms():
    return {
        "room-general": RoomMeta(id="room-general", name="General"),
        "room-private": RoomMeta(id="room-private", name="Board", is_private=True),
        "room-archived": RoomMeta(id="room-archived", name="Old", is_archived=True),
    }


@pytest.fixture
def store(alice, bob, carol, rooms):
    users = {u.id: u for u in (alice, bob, carol)}
    allowed = {
        (alice.id, "room-general"),
        (bob.id, "room-general"),
        (alice.id, "room-private"),
        (alice.id, "room-archived"),
    }
    return RealtimeStore(
        users=FakeUserStore(users),
        rooms=FakeRoomStore(rooms),
        membership=FakeMembershipStore(allowed),
        messages=FakeMessageStore(users),
    )


@pytest.fixture
def authenticator(store):
    return SessionAuthenticator(
        store.users,
        secret=JWT_SECRET,
        issuer=JWT_ISSUER,
        audience=JWT_AUDIENCE,
    )


@pytest.fixture
def manager(store, authenticator):
    return ConnectionManager(
        store,
        authenticator,
        limits=ConnectionLimits(max_per_user=3, max_total=10),
        send_timeout=0.5,
        max_message_length=100,
    )


@pytest.fixture
def open_connection(manager):
    """Returns a coroutine function that connects an identity to the manager."""

    async def _open(identity: Identity, transport: Optional[RecordingTransport] = None):
        transport = transport or RecordingTransport()
        connection = await manager.connect(transport, identity)
        return connection, transport

    return _open
