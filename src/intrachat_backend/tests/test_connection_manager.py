"""
Tests for the connection lifecycle.

Test coverage:
- Connect: limits, presence registration, online announcement
- Disconnect: teardown, offline announcement only at zero connections
- Server-directed pushes and forced disconnect
- Shutdown
"""

import pytest

from intrachat_backend.exceptions import ConnectionLimitException
from intrachat_backend.websocket.connection import ConnectionState
from intrachat_types.websocket import WSPong


class TestConnect:

    @pytest.mark.asyncio
    async def test_connect_registers_presence(self, manager, open_connection, alice):
        conn, _ = await open_connection(alice)

        assert conn.state == ConnectionState.ACTIVE
        assert manager.presence.is_online(alice.id)
        assert manager.get_connection(conn.connection_id) is conn
        assert manager.connections_for_user(alice.id) == [conn]

    @pytest.mark.asyncio
    async def test_every_connection_gets_a_new_id(self, manager, open_connection, alice):
        c1, _ = await open_connection(alice)
        await manager.disconnect(c1)
        c2, _ = await open_connection(alice)

        assert c1.connection_id != c2.connection_id
        assert c1.state == ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_online_announced_to_other_users_once(self, manager, open_connection, alice, bob):
        a, a_transport = await open_connection(alice)

        b1, b1_transport = await open_connection(bob)
        b2, _ = await open_connection(bob)

        online = a_transport.of_type("user:online")
        assert len(online) == 1
        assert online[0]["user_id"] == bob.id
        assert online[0]["user"]["display_name"] == "Bob"
        # A user is not told about their own presence
        assert b1_transport.of_type("user:online") == []

    @pytest.mark.asyncio
    async def test_per_user_limit(self, manager, open_connection, alice):
        for _ in range(3):
            await open_connection(alice)

        with pytest.raises(ConnectionLimitException) as exc_info:
            await open_connection(alice)

        assert exc_info.value.close_code == 4008
        assert exc_info.value.error_code == "CONNECTION_LIMIT"
        assert manager.presence.connection_count_for(alice.id) == 3

    @pytest.mark.asyncio
    async def test_total_limit(self, manager, open_connection, store, alice, bob, carol):
        for identity in (alice, bob, carol):
            for _ in range(3):
                await open_connection(identity)
        extra = alice.model_copy(update={"id": "user-dave"})
        await open_connection(extra)

        with pytest.raises(ConnectionLimitException):
            await open_connection(extra.model_copy(update={"id": "user-erin"}))

        assert manager.get_connection_count() == 10


class TestDisconnect:

    @pytest.mark.asyncio
    async def test_offline_only_after_last_connection(self, manager, open_connection, alice, bob):
        a, a_transport = await open_connection(alice)
        b1, _ = await open_connection(bob)
        b2, _ = await open_connection(bob)

        await manager.disconnect(b1)
        assert manager.presence.is_online(bob.id)
        assert a_transport.of_type("user:offline") == []

        await manager.disconnect(b2)
        assert not manager.presence.is_online(bob.id)
        offline = a_transport.of_type("user:offline")
        assert offline == [{"type": "user:offline", "user_id": bob.id}]

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, manager, open_connection, alice, bob):
        a, a_transport = await open_connection(alice)
        b, _ = await open_connection(bob)

        await manager.disconnect(b)
        await manager.disconnect(b)

        assert len(a_transport.of_type("user:offline")) == 1

    @pytest.mark.asyncio
    async def test_disconnect_removes_memberships(self, manager, open_connection, alice):
        conn, _ = await open_connection(alice)
        await manager.rooms.join(conn, "room-general")
        await manager.rooms.join(conn, "room-private")

        await manager.disconnect(conn)

        assert manager.rooms.members_of("room-general") == set()
        assert manager.rooms.members_of("room-private") == set()
        assert conn.rooms == set()
        assert manager.get_connection(conn.connection_id) is None

    @pytest.mark.asyncio
    async def test_closed_connection_receives_nothing(self, manager, open_connection, alice):
        conn, transport = await open_connection(alice)
        await manager.disconnect(conn)
        transport.clear()

        assert await manager.send_to_connection(conn, WSPong()) is False
        assert transport.sent == []


class TestServerPushes:

    @pytest.mark.asyncio
    async def test_send_to_user_reaches_every_device(self, manager, open_connection, alice, bob):
        _, t1 = await open_connection(alice)
        _, t2 = await open_connection(alice)
        _, t3 = await open_connection(bob)
        for t in (t1, t2, t3):
            t.clear()

        result = await manager.send_to_user(alice.id, WSPong())

        assert len(result.delivered) == 2
        assert len(t1.sent) == len(t2.sent) == 1
        assert t3.sent == []

    @pytest.mark.asyncio
    async def test_send_to_offline_user(self, manager):
        result = await manager.send_to_user("user-nobody", WSPong())

        assert result.recipient_count == 0

    @pytest.mark.asyncio
    async def test_disconnect_user(self, manager, open_connection, alice, bob):
        _, t1 = await open_connection(alice)
        _, t2 = await open_connection(alice)
        _, bob_transport = await open_connection(bob)

        closed = await manager.disconnect_user(alice.id, code=4003, reason="Account deactivated")

        assert closed == 2
        assert t1.closed == (4003, "Account deactivated")
        assert t2.closed == (4003, "Account deactivated")
        assert not manager.presence.is_online(alice.id)
        assert len(bob_transport.of_type("user:offline")) == 1

    @pytest.mark.asyncio
    async def test_stop_closes_everything(self, manager, open_connection, alice, bob):
        a, a_transport = await open_connection(alice)
        b, b_transport = await open_connection(bob)
        await manager.rooms.join(a, "room-general")

        await manager.stop()

        assert a_transport.closed[0] == 1001
        assert b_transport.closed[0] == 1001
        assert manager.get_stats() == {"connections": 0, "online_users": 0, "rooms": 0}
        assert a.state == ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_stats(self, manager, open_connection, alice, bob):
        a1, _ = await open_connection(alice)
        await open_connection(alice)
        b, _ = await open_connection(bob)
        await manager.rooms.join(a1, "room-general")
        await manager.rooms.join(b, "room-general")

        assert manager.get_stats() == {"connections": 3, "online_users": 2, "rooms": 1}
