"""
Message ingress pipeline.

Order of operations for every submitted message:

1. the submitting connection must currently be a member of the room
2. content and type are validated
3. a reply target must exist in the same room
4. the message is persisted
5. the room's last activity is bumped (best effort)
6. the hydrated message is broadcast to the room's current members

Nothing is broadcast unless step 4 succeeded. Once it has, the message is
durable regardless of how many recipients the broadcast reaches.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from intrachat_backend.exceptions import (
    ForbiddenException,
    NotFoundException,
    PersistenceException,
    RealtimeException,
    ValidationFailedException,
)
from intrachat_backend.repositories.base import MessageStore, RoomStore
from intrachat_backend.websocket.broadcast import BroadcastResult
from intrachat_backend.websocket.connection import Connection
from intrachat_backend.websocket.rooms import RoomMembershipManager
from intrachat_types.messages import ChatMessage, MessageType
from intrachat_types.websocket import WSMessageNew

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_LENGTH = 4000


@dataclass
class IngressResult:
    message: ChatMessage
    broadcast: BroadcastResult


class MessageIngressPipeline:

    def __init__(
        self,
        rooms: RoomMembershipManager,
        messages: MessageStore,
        room_store: RoomStore,
        max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH,
    ):
        self.rooms = rooms
        self.messages = messages
        self.room_store = room_store
        self.max_content_length = max_content_length

    def validate(self, content, message_type) -> MessageType:
        """
        Check content and type of an incoming message.

        Returns:
            The resolved MessageType (text when none was given)

        Raises:
            ValidationFailedException: If content or type is not acceptable
        """
        if not isinstance(content, str) or not content.strip():
            raise ValidationFailedException("Message content is required")

        if len(content) > self.max_content_length:
            raise ValidationFailedException(
                f"Message content exceeds {self.max_content_length} characters"
            )

        if message_type is None:
            return MessageType.TEXT

        try:
            return MessageType(message_type)
        except ValueError:
            raise ValidationFailedException(f"Invalid message type: {message_type}")

    async def submit(
        self,
        connection: Connection,
        room_id: str,
        content,
        message_type=None,
        reply_to_id: Optional[str] = None,
    ) -> IngressResult:
        """
        Validate, persist and broadcast one message.

        Raises:
            ForbiddenException: Connection is not a member of the room
            ValidationFailedException: Content or type rejected
            NotFoundException: Reply target missing or in another room
            PersistenceException: The store failed to create the message
        """
        if not self.rooms.is_member(connection, room_id):
            raise ForbiddenException(
                f"Connection {connection.connection_id} is not a member of chat {room_id}"
            )

        resolved_type = self.validate(content, message_type)
        reply_to_id = reply_to_id or None

        if reply_to_id is not None:
            parent = await self.messages.find_by_id(reply_to_id)
            if parent is None or parent.chat_id != room_id:
                raise NotFoundException(f"Reply target {reply_to_id} not found in chat {room_id}")

        try:
            message = await self.messages.create(
                room_id,
                connection.user_id,
                content,
                resolved_type,
                reply_to_id,
            )
        except RealtimeException:
            raise
        except Exception as e:
            logger.error(f"Failed to persist message from user {connection.user_id} in {room_id}: {e}")
            raise PersistenceException(str(e)) from e

        try:
            await self.room_store.touch_activity(room_id)
        except Exception as e:
            logger.error(f"Failed to update last activity for chat {room_id}: {e}")

        # Current group at send time, which includes the sender's other devices
        result = await self.rooms.broadcast(room_id, WSMessageNew(chat_id=room_id, data=message))

        logger.debug(
            f"Message {message.id} in {room_id} delivered to "
            f"{len(result.delivered)}/{result.recipient_count} connections"
        )
        return IngressResult(message=message, broadcast=result)
