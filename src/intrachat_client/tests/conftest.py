"""Pytest configuration and fixtures for realtime client tests."""

import asyncio
import json
from typing import Iterable, List, Optional

import pytest
from websockets.exceptions import ConnectionClosed
from websockets.frames import Close

from intrachat_client.realtime import RealtimeClient


# ============================================================================
# Fake server side
# ============================================================================


class FakeServerTransport:
    """Scripted stand-in for a websockets client connection."""

    def __init__(self, frames: Iterable[dict] = ()):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: List[dict] = []
        self.closed = False
        for frame in frames:
            self.push(frame)

    def push(self, frame: dict):
        self.incoming.put_nowait(json.dumps(frame))

    def push_raw(self, text: str):
        self.incoming.put_nowait(text)

    def drop(self, code: Optional[int] = 1006):
        rcvd = Close(code, "") if code is not None else None
        self.incoming.put_nowait(ConnectionClosed(rcvd, None))

    async def recv(self):
        item = await self.incoming.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, message: str):
        if self.closed:
            raise ConnectionClosed(None, None)
        self.sent.append(json.loads(message))

    async def close(self, code: int = 1000, reason: str = ""):
        if not self.closed:
            self.closed = True
            self.incoming.put_nowait(ConnectionClosed(Close(code, reason), None))

    def of_type(self, event_type: str) -> List[dict]:
        return [frame for frame in self.sent if frame.get("type") == event_type]


class FakeConnector:
    """Hands out scripted transports (or raises scripted errors) in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def __call__(self, url: str, token: str, open_timeout: float):
        self.calls.append((url, token))
        if not self.outcomes:
            raise OSError("connection refused")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def connected_frame(user_id: str = "u-alice", online: Iterable[str] = ("u-alice",)) -> dict:
    return {
        "type": "system:connected",
        "connection_id": "conn-1",
        "user_id": user_id,
        "user": {"id": user_id, "display_name": "Alice"},
        "online_user_ids": list(online),
    }


def message_frame(chat_id: str = "room-1", message_id: str = "msg-1", content: str = "hello") -> dict:
    return {
        "type": "message:new",
        "chat_id": chat_id,
        "data": {
            "id": message_id,
            "chat_id": chat_id,
            "sender_id": "u-bob",
            "content": content,
            "type": "text",
            "created_at": "2024-05-01T12:00:00+00:00",
            "sender": {"id": "u-bob", "display_name": "Bob"},
        },
    }


async def eventually(predicate, timeout: float = 1.0):
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def make_client():
    """Returns a factory building clients with fast reconnect settings."""

    def _make(*outcomes, **kwargs):
        connector = FakeConnector(*outcomes)
        kwargs.setdefault("reconnect_delay", 0)
        kwargs.setdefault("open_timeout", 1.0)
        client = RealtimeClient("ws://test/ws", "token-123", connector=connector, **kwargs)
        return client, connector

    return _make
