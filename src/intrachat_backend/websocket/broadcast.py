"""
Fan-out of server events to sets of connections.

``BroadcastGroup`` is the transport-neutral replacement for a socket
library's room primitive: a set of connection handles plus ``send_all``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from pydantic import BaseModel

from intrachat_backend.websocket.connection import Connection

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    """Connection ids a broadcast reached and those it did not."""
    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def recipient_count(self) -> int:
        return len(self.delivered) + len(self.failed)


async def fan_out(
    connections: Iterable[Connection],
    event,
    timeout: Optional[float] = None,
    exclude: Optional[Set[str]] = None,
) -> BroadcastResult:
    """
    Send one event to many connections concurrently.

    The event is serialized once. A slow or broken recipient counts as a
    failed delivery and never blocks the others.

    Args:
        connections: Target connections
        event: pydantic event model or JSON-ready dict
        timeout: Per-recipient send timeout
        exclude: Connection ids to skip

    Returns:
        BroadcastResult with delivered and failed connection ids
    """
    payload = event.model_dump(mode="json") if isinstance(event, BaseModel) else event
    exclude = exclude or set()

    targets = [c for c in connections if c.connection_id not in exclude]
    result = BroadcastResult()
    if not targets:
        return result

    outcomes = await asyncio.gather(
        *(c.send(payload, timeout=timeout) for c in targets),
        return_exceptions=True,
    )
    for conn, outcome in zip(targets, outcomes):
        if outcome is True:
            result.delivered.append(conn.connection_id)
        else:
            result.failed.append(conn.connection_id)

    logger.debug(f"Broadcast {payload.get('type')}: {len(result.delivered)}/{len(targets)} successful")
    return result


class BroadcastGroup:
    """Set of connections that receive the broadcasts of one room."""

    def __init__(self, name: str, send_timeout: Optional[float] = None):
        self.name = name
        self.send_timeout = send_timeout
        self._members: Dict[str, Connection] = {}

    def add(self, connection: Connection) -> bool:
        """Add a connection; returns False if it was already a member."""
        if connection.connection_id in self._members:
            return False
        self._members[connection.connection_id] = connection
        return True

    def discard(self, connection_id: str) -> bool:
        return self._members.pop(connection_id, None) is not None

    def connection_ids(self) -> Set[str]:
        return set(self._members)

    def connections(self) -> List[Connection]:
        return list(self._members.values())

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._members

    def __len__(self) -> int:
        return len(self._members)

    async def send_all(self, event, exclude: Optional[Set[str]] = None) -> BroadcastResult:
        # Snapshot at send time: a member that leaves after this point still
        # gets this frame, one that left before does not.
        return await fan_out(self.connections(), event, timeout=self.send_timeout, exclude=exclude)
