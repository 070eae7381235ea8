"""
Per-transport connection state.

A ``Connection`` is created once the handshake credential has been
verified and is never reused after it reaches ``CLOSED``; a reconnect
always gets a fresh ``connection_id``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol, Set
from uuid import uuid4

from pydantic import BaseModel

from intrachat_types.auth import Identity

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


class ConnectionTransport(Protocol):
    """The subset of ``fastapi.WebSocket`` the realtime layer relies on."""

    async def send_json(self, data: Any) -> None:
        ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        ...


def _new_connection_id() -> str:
    return uuid4().hex


@dataclass(eq=False)
class Connection:
    """One authenticated realtime transport session for one user."""
    transport: ConnectionTransport
    identity: Identity
    connection_id: str = field(default_factory=_new_connection_id)
    rooms: Set[str] = field(default_factory=set)
    state: ConnectionState = ConnectionState.AUTHENTICATED
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def user_id(self) -> str:
        return self.identity.id

    @property
    def is_active(self) -> bool:
        return self.state == ConnectionState.ACTIVE

    async def send(self, event, timeout: Optional[float] = None) -> bool:
        """
        Send an event or an already serialized payload.

        Args:
            event: pydantic event model or JSON-ready dict
            timeout: Seconds to wait for the transport, ``None`` waits forever

        Returns:
            True if the frame was handed to the transport, False otherwise
        """
        if self.state == ConnectionState.CLOSED:
            return False

        payload = event.model_dump(mode="json") if isinstance(event, BaseModel) else event

        try:
            if timeout is None:
                await self.transport.send_json(payload)
            else:
                await asyncio.wait_for(self.transport.send_json(payload), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Send timeout to connection {self.connection_id} (user={self.user_id})")
            return False
        except Exception as e:
            logger.error(f"Failed to send to connection {self.connection_id} (user={self.user_id}): {e}")
            return False
