"""
Realtime connection manager for intrachat clients.

Owns the single websocket transport of a client, reconnects after
unexpected drops, re-joins chats once reconnected and fans incoming server
events out to listener registries, so UI code subscribes to events without
ever touching the transport.

Usage:
    client = RealtimeClient("ws://localhost:8000/ws", token)
    unsubscribe = client.on_message(lambda event: print(event.data.content))

    await client.connect()
    await client.join_room(chat_id)
    await client.send(chat_id, "hello")
    ...
    unsubscribe()
    await client.disconnect()
"""

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set, Union

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from intrachat_client.exceptions import (
    AuthenticationError,
    ConnectionInProgressError,
    ConnectionLostError,
)
from intrachat_types.auth import UserSummary
from intrachat_types.messages import MessageType
from intrachat_types.websocket import (
    parse_server_event,
    WSChatJoin,
    WSChatJoined,
    WSChatLeave,
    WSChatLeft,
    WSConnected,
    WSError,
    WSMessageNew,
    WSMessageSend,
    WSPing,
    WSPong,
    WSTypingStart,
    WSTypingStarted,
    WSTypingStop,
    WSTypingStopped,
    WSUserOffline,
    WSUserOnline,
)

logger = logging.getLogger(__name__)

AUTH_CLOSE_CODE = 4001


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class StatusEvent(str, Enum):
    """Notifications delivered to ``on_status`` listeners."""
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    RECONNECTED = "reconnected"
    CONNECTION_LOST = "connection_lost"
    DISCONNECTED = "disconnected"


@dataclass
class PresenceUpdate:
    user_id: str
    online: bool
    user: Optional[UserSummary] = None


@dataclass
class TypingUpdate:
    chat_id: str
    user_id: str
    is_typing: bool
    user: Optional[UserSummary] = None


@dataclass
class RoomUpdate:
    chat_id: str
    joined: bool


class Transport(Protocol):
    """The subset of a ``websockets`` client connection used here."""

    async def send(self, message: str) -> None:
        ...

    async def recv(self) -> Union[str, bytes]:
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None:
        ...


Connector = Callable[[str, str, float], Awaitable[Transport]]
Listener = Callable[[Any], Any]

LISTENER_CATEGORIES = ("message", "presence", "typing", "room", "error", "status")


async def websockets_connector(url: str, token: str, open_timeout: float) -> Transport:
    """Open a connection presenting the token as the ``bearer`` subprotocol pair."""
    return await ws_connect(
        url,
        subprotocols=["bearer", token],
        open_timeout=open_timeout,
    )


def _close_code(error: ConnectionClosed) -> Optional[int]:
    return error.rcvd.code if error.rcvd is not None else None


class RealtimeClient:
    """
    Client-side connection manager.

    Keeps at most one transport. ``connect`` is idempotent while connected
    and fails fast while a handshake is running. After an unexpected drop it
    retries ``reconnect_attempts`` times with a fixed ``reconnect_delay``;
    an authentication rejection ends the retries immediately.
    """

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        *,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        open_timeout: float = 10.0,
        connector: Optional[Connector] = None,
    ):
        self.url = url
        self.token = token
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.open_timeout = open_timeout
        self._connector = connector or websockets_connector

        self.status = ConnectionStatus.DISCONNECTED
        self.user_id: Optional[str] = None
        self.connection_id: Optional[str] = None
        self.online_user_ids: Set[str] = set()

        self._transport: Optional[Transport] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._rooms: Set[str] = set()
        self._closing = False
        self._listeners: Dict[str, List[Listener]] = {c: [] for c in LISTENER_CATEGORIES}

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def joined_rooms(self) -> Set[str]:
        return set(self._rooms)

    async def __aenter__(self) -> "RealtimeClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, token: Optional[str] = None) -> None:
        """
        Open the connection and wait for the server's confirmation.

        Raises:
            ConnectionInProgressError: A handshake is already running
            AuthenticationError: The server rejected the token
            ConnectionLostError: The server could not be reached
        """
        if token:
            self.token = token

        if self.status == ConnectionStatus.CONNECTED:
            return
        if self.status in (ConnectionStatus.CONNECTING, ConnectionStatus.RECONNECTING):
            raise ConnectionInProgressError()
        if not self.token:
            raise AuthenticationError("Authentication token required")

        self.status = ConnectionStatus.CONNECTING
        self._closing = False
        try:
            await self._open()
        except BaseException:
            self.status = ConnectionStatus.DISCONNECTED
            raise

        self.status = ConnectionStatus.CONNECTED
        self._reader_task = asyncio.create_task(self._read_loop())
        logger.info(f"Connected as user {self.user_id} (connection {self.connection_id})")
        await self._emit("status", StatusEvent.CONNECTED)

    async def disconnect(self) -> None:
        """Close the transport and stop reconnecting. Safe to call repeatedly."""
        self._closing = True
        previous = self.status
        self.status = ConnectionStatus.DISCONNECTED

        transport, self._transport = self._transport, None
        task, self._reader_task = self._reader_task, None

        if transport is not None:
            await self._close_quietly(transport)

        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._rooms.clear()
        self.online_user_ids.clear()

        if previous != ConnectionStatus.DISCONNECTED:
            await self._emit("status", StatusEvent.DISCONNECTED)

    async def _open(self) -> None:
        """Open a transport and consume the handshake confirmation frame."""
        try:
            transport = await asyncio.wait_for(
                self._connector(self.url, self.token, self.open_timeout),
                timeout=self.open_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectionLostError("Timed out opening connection") from e
        except (OSError, WebSocketException) as e:
            raise ConnectionLostError(f"Could not connect: {e}") from e

        try:
            raw = await asyncio.wait_for(transport.recv(), timeout=self.open_timeout)
        except asyncio.TimeoutError as e:
            await self._close_quietly(transport)
            raise ConnectionLostError("No confirmation from server") from e
        except ConnectionClosed as e:
            code = _close_code(e)
            if code == AUTH_CLOSE_CODE:
                raise AuthenticationError(close_code=code) from e
            raise ConnectionLostError("Connection closed during handshake", close_code=code) from e

        event = self._decode(raw)

        if isinstance(event, WSError):
            await self._close_quietly(transport)
            if event.code == "AUTH_FAILED":
                raise AuthenticationError(event.message)
            raise ConnectionLostError(event.message, error_code=event.code)

        if not isinstance(event, WSConnected):
            await self._close_quietly(transport)
            raise ConnectionLostError("Unexpected handshake frame from server")

        self._transport = transport
        self.user_id = event.user_id
        self.connection_id = event.connection_id
        self.online_user_ids = set(event.online_user_ids)

    async def _read_loop(self) -> None:
        transport = self._transport
        close_code = None

        try:
            while True:
                raw = await transport.recv()
                event = self._decode(raw)
                if event is not None:
                    await self._dispatch(event)
        except ConnectionClosed as e:
            close_code = _close_code(e)
            logger.info(f"Connection closed by server (code={close_code})")
        except (OSError, WebSocketException) as e:
            logger.warning(f"Connection dropped: {e}")
        except Exception:
            logger.exception("Reader stopped unexpectedly")

        if self._closing or transport is not self._transport:
            return

        self._transport = None
        await self._close_quietly(transport)
        await self._reconnect(close_code)

    async def _reconnect(self, close_code: Optional[int]) -> None:
        if close_code == AUTH_CLOSE_CODE:
            logger.warning("Session rejected by server; not reconnecting")
            await self._connection_lost()
            return

        self.status = ConnectionStatus.RECONNECTING
        await self._emit("status", StatusEvent.RECONNECTING)

        for attempt in range(1, self.reconnect_attempts + 1):
            await asyncio.sleep(self.reconnect_delay)
            if self._closing:
                return

            try:
                await self._open()
            except AuthenticationError as e:
                logger.warning(f"Reconnect rejected: {e}")
                break
            except ConnectionLostError as e:
                logger.info(f"Reconnect attempt {attempt}/{self.reconnect_attempts} failed: {e}")
                continue

            if self._closing:
                transport, self._transport = self._transport, None
                await self._close_quietly(transport)
                return

            self.status = ConnectionStatus.CONNECTED
            self._reader_task = asyncio.create_task(self._read_loop())
            await self._rejoin_rooms()
            logger.info(f"Reconnected after {attempt} attempt(s)")
            await self._emit("status", StatusEvent.RECONNECTED)
            return

        await self._connection_lost()

    async def _connection_lost(self) -> None:
        self.status = ConnectionStatus.DISCONNECTED
        self._rooms.clear()
        self.online_user_ids.clear()
        await self._emit("status", StatusEvent.CONNECTION_LOST)

    async def _rejoin_rooms(self) -> None:
        # The server side is a brand-new connection without memberships
        for chat_id in sorted(self._rooms):
            await self._send_event(WSChatJoin(chat_id=chat_id))

    @staticmethod
    async def _close_quietly(transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.debug(f"Error while closing transport: {e}")

    # ------------------------------------------------------------------
    # Outgoing events
    # ------------------------------------------------------------------

    async def _send_event(self, event) -> bool:
        transport = self._transport
        if self.status != ConnectionStatus.CONNECTED or transport is None:
            return False

        try:
            await transport.send(json.dumps(event.model_dump(mode="json", exclude_none=True)))
            return True
        except (ConnectionClosed, OSError) as e:
            logger.warning(f"Failed to send {event.type}: {e}")
            return False

    async def join_room(self, chat_id: str) -> bool:
        """Request membership; confirmed by a ``room`` event."""
        return await self._send_event(WSChatJoin(chat_id=chat_id))

    async def leave_room(self, chat_id: str) -> bool:
        self._rooms.discard(chat_id)
        return await self._send_event(WSChatLeave(chat_id=chat_id))

    async def send(
        self,
        chat_id: str,
        content: str,
        message_type: Optional[Union[MessageType, str]] = None,
        reply_to_id: Optional[str] = None,
    ) -> bool:
        """
        Submit a message. Returns False without sending while disconnected.

        The message arrives back as a ``message`` event once persisted.
        """
        if isinstance(message_type, MessageType):
            message_type = message_type.value

        return await self._send_event(WSMessageSend(
            chat_id=chat_id,
            content=content,
            message_type=message_type,
            reply_to_id=reply_to_id,
        ))

    async def start_typing(self, chat_id: str) -> bool:
        return await self._send_event(WSTypingStart(chat_id=chat_id))

    async def stop_typing(self, chat_id: str) -> bool:
        return await self._send_event(WSTypingStop(chat_id=chat_id))

    async def ping(self) -> bool:
        return await self._send_event(WSPing())

    # ------------------------------------------------------------------
    # Incoming events
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(raw):
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring non-JSON frame from server")
            return None

        event = parse_server_event(data)
        if event is None:
            logger.debug(f"Ignoring unknown server event: {data.get('type') if isinstance(data, dict) else data!r}")
        return event

    async def _dispatch(self, event) -> None:
        if isinstance(event, WSMessageNew):
            await self._emit("message", event)

        elif isinstance(event, WSUserOnline):
            self.online_user_ids.add(event.user_id)
            await self._emit("presence", PresenceUpdate(event.user_id, True, event.user))

        elif isinstance(event, WSUserOffline):
            self.online_user_ids.discard(event.user_id)
            await self._emit("presence", PresenceUpdate(event.user_id, False))

        elif isinstance(event, WSTypingStarted):
            await self._emit("typing", TypingUpdate(event.chat_id, event.user_id, True, event.user))

        elif isinstance(event, WSTypingStopped):
            await self._emit("typing", TypingUpdate(event.chat_id, event.user_id, False))

        elif isinstance(event, WSChatJoined):
            self._rooms.add(event.chat_id)
            await self._emit("room", RoomUpdate(event.chat_id, True))

        elif isinstance(event, WSChatLeft):
            self._rooms.discard(event.chat_id)
            await self._emit("room", RoomUpdate(event.chat_id, False))

        elif isinstance(event, WSError):
            logger.info(f"Server error {event.code}: {event.message}")
            await self._emit("error", event)

        elif isinstance(event, WSPong):
            logger.debug("pong")

    async def _emit(self, category: str, payload) -> None:
        # Iterate over a copy so listeners may unsubscribe while being called
        for listener in list(self._listeners[category]):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"{category} listener {listener!r} failed")

    def _subscribe(self, category: str, listener: Listener) -> Callable[[], None]:
        self._listeners[category].append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners[category].remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def on_message(self, listener: Listener) -> Callable[[], None]:
        """Subscribe to ``WSMessageNew`` events. Returns an unsubscribe function."""
        return self._subscribe("message", listener)

    def on_presence(self, listener: Listener) -> Callable[[], None]:
        return self._subscribe("presence", listener)

    def on_typing(self, listener: Listener) -> Callable[[], None]:
        return self._subscribe("typing", listener)

    def on_room_event(self, listener: Listener) -> Callable[[], None]:
        return self._subscribe("room", listener)

    def on_error(self, listener: Listener) -> Callable[[], None]:
        return self._subscribe("error", listener)

    def on_status(self, listener: Listener) -> Callable[[], None]:
        return self._subscribe("status", listener)
