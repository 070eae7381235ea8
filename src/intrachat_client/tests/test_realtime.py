"""
Tests for the RealtimeClient connection manager.

Test coverage:
- Connect idempotence and fail-fast while connecting
- Handshake rejection handling
- Listener registries and isolation
- Reconnect, re-join and terminal connection loss
"""

import asyncio

import pytest
from websockets.exceptions import ProtocolError

from intrachat_client.exceptions import (
    AuthenticationError,
    ConnectionInProgressError,
    ConnectionLostError,
)
from intrachat_client.realtime import ConnectionStatus, RealtimeClient, StatusEvent
from intrachat_client.tests.conftest import (
    FakeServerTransport,
    connected_frame,
    eventually,
    message_frame,
)


class TestConnect:

    @pytest.mark.asyncio
    async def test_connect_success(self, make_client):
        transport = FakeServerTransport([connected_frame(online=["u-alice", "u-bob"])])
        client, connector = make_client(transport)
        statuses = []
        client.on_status(statuses.append)

        await client.connect()

        assert client.is_connected
        assert client.user_id == "u-alice"
        assert client.connection_id == "conn-1"
        assert client.online_user_ids == {"u-alice", "u-bob"}
        assert connector.calls == [("ws://test/ws", "token-123")]
        assert statuses == [StatusEvent.CONNECTED]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, make_client):
        client, connector = make_client(FakeServerTransport([connected_frame()]))

        await client.connect()
        await client.connect()

        assert len(connector.calls) == 1
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_connect_while_connecting_fails_fast(self, make_client):
        transport = FakeServerTransport()
        client, connector = make_client(transport)

        first = asyncio.create_task(client.connect())
        await eventually(lambda: connector.calls)

        with pytest.raises(ConnectionInProgressError):
            await client.connect()

        transport.push(connected_frame())
        await first
        assert client.is_connected
        assert len(connector.calls) == 1
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_token_required(self):
        client = RealtimeClient("ws://test/ws")

        with pytest.raises(AuthenticationError):
            await client.connect()

    @pytest.mark.asyncio
    async def test_auth_rejected(self, make_client):
        transport = FakeServerTransport([
            {"type": "system:error", "code": "AUTH_FAILED", "message": "Token expired"},
        ])
        client, _ = make_client(transport)

        with pytest.raises(AuthenticationError) as exc_info:
            await client.connect()

        assert exc_info.value.message == "Token expired"
        assert client.status == ConnectionStatus.DISCONNECTED
        assert transport.closed

    @pytest.mark.asyncio
    async def test_connection_limit(self, make_client):
        transport = FakeServerTransport([
            {"type": "system:error", "code": "CONNECTION_LIMIT", "message": "Too many connections (max 10)"},
        ])
        client, _ = make_client(transport)

        with pytest.raises(ConnectionLostError) as exc_info:
            await client.connect()

        assert exc_info.value.error_code == "CONNECTION_LIMIT"

    @pytest.mark.asyncio
    async def test_server_unreachable(self, make_client):
        client, _ = make_client(OSError("connection refused"))

        with pytest.raises(ConnectionLostError):
            await client.connect()

        assert client.status == ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_no_confirmation_times_out(self, make_client):
        transport = FakeServerTransport()
        client, _ = make_client(transport, open_timeout=0.05)

        with pytest.raises(ConnectionLostError):
            await client.connect()

        assert transport.closed


class TestSending:

    @pytest.mark.asyncio
    async def test_send_while_disconnected(self, make_client):
        client, _ = make_client()

        assert await client.send("room-1", "hello") is False
        assert await client.join_room("room-1") is False
        assert await client.start_typing("room-1") is False

    @pytest.mark.asyncio
    async def test_outgoing_frames(self, make_client):
        transport = FakeServerTransport([connected_frame()])
        client, _ = make_client(transport)
        await client.connect()

        assert await client.join_room("room-1")
        assert await client.send("room-1", "hello")
        assert await client.send("room-1", "look", message_type="image", reply_to_id="msg-1")
        assert await client.start_typing("room-1")
        assert await client.stop_typing("room-1")
        assert await client.leave_room("room-1")
        assert await client.ping()

        assert transport.sent == [
            {"type": "chat:join", "chat_id": "room-1"},
            {"type": "message:send", "chat_id": "room-1", "content": "hello"},
            {"type": "message:send", "chat_id": "room-1", "content": "look", "message_type": "image", "reply_to_id": "msg-1"},
            {"type": "typing:start", "chat_id": "room-1"},
            {"type": "typing:stop", "chat_id": "room-1"},
            {"type": "chat:leave", "chat_id": "room-1"},
            {"type": "system:ping"},
        ]
        await client.disconnect()


class TestListeners:

    @pytest.mark.asyncio
    async def test_incoming_events_reach_listeners(self, make_client):
        transport = FakeServerTransport([connected_frame()])
        client, _ = make_client(transport)
        messages, presence, typing, rooms, errors = [], [], [], [], []
        client.on_message(messages.append)
        client.on_presence(presence.append)
        client.on_typing(typing.append)
        client.on_room_event(rooms.append)
        client.on_error(errors.append)
        await client.connect()

        transport.push({"type": "chat:joined", "chat_id": "room-1"})
        transport.push(message_frame())
        transport.push({"type": "user:online", "user_id": "u-bob", "user": {"id": "u-bob", "display_name": "Bob"}})
        transport.push({"type": "typing:start", "chat_id": "room-1", "user_id": "u-bob"})
        transport.push({"type": "typing:stop", "chat_id": "room-1", "user_id": "u-bob"})
        transport.push({"type": "system:error", "code": "CHAT_ACCESS_DENIED", "message": "Chat not found or access denied"})
        transport.push({"type": "user:offline", "user_id": "u-bob"})
        await eventually(lambda: len(presence) == 2)

        assert [r.joined for r in rooms] == [True]
        assert client.joined_rooms == {"room-1"}
        assert messages[0].data.content == "hello"
        assert messages[0].data.sender.display_name == "Bob"
        assert [(p.user_id, p.online) for p in presence] == [("u-bob", True), ("u-bob", False)]
        assert [t.is_typing for t in typing] == [True, False]
        assert errors[0].code == "CHAT_ACCESS_DENIED"
        assert "u-bob" not in client.online_user_ids
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_failing_listener_is_isolated(self, make_client):
        transport = FakeServerTransport([connected_frame()])
        client, _ = make_client(transport)
        received = []

        def broken(event):
            raise RuntimeError("component bug")

        client.on_message(broken)
        client.on_message(received.append)
        await client.connect()

        transport.push(message_frame(message_id="msg-1"))
        transport.push(message_frame(message_id="msg-2"))
        await eventually(lambda: len(received) == 2)

        assert client.is_connected
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_async_listener(self, make_client):
        transport = FakeServerTransport([connected_frame()])
        client, _ = make_client(transport)
        received = []

        async def listener(event):
            await asyncio.sleep(0)
            received.append(event.data.id)

        client.on_message(listener)
        await client.connect()
        transport.push(message_frame())
        await eventually(lambda: received == ["msg-1"])
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_unsubscribe(self, make_client):
        transport = FakeServerTransport([connected_frame()])
        client, _ = make_client(transport)
        first, second = [], []
        unsubscribe = client.on_message(first.append)
        client.on_message(second.append)
        await client.connect()

        unsubscribe()
        unsubscribe()
        transport.push(message_frame())
        await eventually(lambda: len(second) == 1)

        assert first == []
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_garbage_frames_are_ignored(self, make_client):
        transport = FakeServerTransport([connected_frame()])
        client, _ = make_client(transport)
        received = []
        client.on_message(received.append)
        await client.connect()

        transport.push_raw("{not json")
        transport.push({"type": "something:else"})
        transport.push(message_frame())
        await eventually(lambda: len(received) == 1)
        await client.disconnect()


class TestReconnect:

    @pytest.mark.asyncio
    async def test_reconnects_and_rejoins(self, make_client):
        first = FakeServerTransport([connected_frame()])
        second = FakeServerTransport([connected_frame()])
        client, connector = make_client(first, second)
        statuses = []
        client.on_status(statuses.append)
        await client.connect()
        first.push({"type": "chat:joined", "chat_id": "room-1"})
        first.push({"type": "chat:joined", "chat_id": "room-2"})
        await eventually(lambda: client.joined_rooms == {"room-1", "room-2"})

        first.drop(1006)
        await eventually(lambda: StatusEvent.RECONNECTED in statuses)

        assert statuses == [StatusEvent.CONNECTED, StatusEvent.RECONNECTING, StatusEvent.RECONNECTED]
        assert client.is_connected
        assert len(connector.calls) == 2
        assert second.of_type("chat:join") == [
            {"type": "chat:join", "chat_id": "room-1"},
            {"type": "chat:join", "chat_id": "room-2"},
        ]

        assert await client.send("room-1", "after reconnect")
        assert second.of_type("message:send")[0]["content"] == "after reconnect"
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_left_room_is_not_rejoined(self, make_client):
        first = FakeServerTransport([connected_frame()])
        second = FakeServerTransport([connected_frame()])
        client, _ = make_client(first, second)
        statuses = []
        client.on_status(statuses.append)
        await client.connect()
        first.push({"type": "chat:joined", "chat_id": "room-1"})
        await eventually(lambda: client.joined_rooms == {"room-1"})
        await client.leave_room("room-1")

        first.drop()
        await eventually(lambda: StatusEvent.RECONNECTED in statuses)

        assert second.of_type("chat:join") == []
        await client.disconnect()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", [ProtocolError("bad frame"), RuntimeError("reader bug")])
    async def test_reader_failure_triggers_reconnect(self, make_client, failure):
        first = FakeServerTransport([connected_frame()])
        second = FakeServerTransport([connected_frame()])
        client, connector = make_client(first, second)
        statuses = []
        client.on_status(statuses.append)
        await client.connect()

        first.incoming.put_nowait(failure)
        await eventually(lambda: StatusEvent.RECONNECTED in statuses)

        assert first.closed
        assert client.is_connected
        assert len(connector.calls) == 2
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_gives_up_after_bounded_attempts(self, make_client):
        first = FakeServerTransport([connected_frame()])
        client, connector = make_client(first, reconnect_attempts=3)
        statuses = []
        client.on_status(statuses.append)
        await client.connect()

        first.drop()
        await eventually(lambda: StatusEvent.CONNECTION_LOST in statuses)

        assert len(connector.calls) == 1 + 3
        assert client.status == ConnectionStatus.DISCONNECTED
        assert await client.send("room-1", "hello") is False

    @pytest.mark.asyncio
    async def test_auth_rejection_ends_reconnect(self, make_client):
        first = FakeServerTransport([connected_frame()])
        rejected = FakeServerTransport([
            {"type": "system:error", "code": "AUTH_FAILED", "message": "Token expired"},
        ])
        client, connector = make_client(first, rejected, reconnect_attempts=5)
        statuses = []
        client.on_status(statuses.append)
        await client.connect()

        first.drop()
        await eventually(lambda: StatusEvent.CONNECTION_LOST in statuses)

        assert len(connector.calls) == 2
        assert client.status == ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_server_auth_close_is_terminal(self, make_client):
        first = FakeServerTransport([connected_frame()])
        client, connector = make_client(first)
        statuses = []
        client.on_status(statuses.append)
        await client.connect()

        first.drop(4001)
        await eventually(lambda: StatusEvent.CONNECTION_LOST in statuses)

        assert StatusEvent.RECONNECTING not in statuses
        assert len(connector.calls) == 1

    @pytest.mark.asyncio
    async def test_disconnect_does_not_reconnect(self, make_client):
        transport = FakeServerTransport([connected_frame()])
        client, connector = make_client(transport)
        statuses = []
        client.on_status(statuses.append)
        await client.connect()

        await client.disconnect()
        await client.disconnect()
        await asyncio.sleep(0.01)

        assert transport.closed
        assert statuses == [StatusEvent.CONNECTED, StatusEvent.DISCONNECTED]
        assert len(connector.calls) == 1
        assert client.status == ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_context_manager(self, make_client):
        transport = FakeServerTransport([connected_frame()])
        client, _ = make_client(transport)

        async with client:
            assert client.is_connected

        assert transport.closed
        assert not client.is_connected
