"""
Message repository for the realtime ingress path.

Creates messages and returns them hydrated with sender display fields and a
reply preview, ready to broadcast.
"""

from typing import Optional
from sqlalchemy.orm import Session

from .base import SqlRepository
from ..model.auth import User
from ..model.chat import Message
from intrachat_types.auth import UserSummary, compose_display_name
from intrachat_types.messages import ChatMessage, MessageReplyTo, MessageType


def _user_summary(user: Optional[User]) -> Optional[UserSummary]:
    if user is None:
        return None
    return UserSummary(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        display_name=compose_display_name(user.first_name, user.last_name, user.email or user.id),
        avatar=user.avatar,
    )


def message_to_dto(message: Message) -> ChatMessage:
    reply_to = None
    if message.reply_to is not None:
        reply_to = MessageReplyTo(
            id=message.reply_to.id,
            content=message.reply_to.content,
            sender=_user_summary(message.reply_to.sender),
        )

    return ChatMessage(
        id=message.id,
        chat_id=message.chat_id,
        sender_id=message.sender_id,
        content=message.content,
        type=MessageType(message.type),
        created_at=message.created_at,
        reply_to_id=message.reply_to_id,
        sender=_user_summary(message.sender),
        reply_to=reply_to,
    )


class MessageRepository(SqlRepository):
    """Repository for Message persistence used by the ingress pipeline."""

    async def create(
        self,
        room_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType,
        reply_to_id: Optional[str] = None,
    ) -> ChatMessage:
        return await self._run(self._create, room_id, sender_id, content, message_type, reply_to_id)

    async def find_by_id(self, message_id: str) -> Optional[ChatMessage]:
        return await self._run(self._find_by_id, message_id)

    @staticmethod
    def _create(
        db: Session,
        room_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType,
        reply_to_id: Optional[str],
    ) -> ChatMessage:
        message = Message(
            chat_id=room_id,
            sender_id=sender_id,
            content=content,
            type=MessageType(message_type).value,
            reply_to_id=reply_to_id,
        )
        db.add(message)
        db.flush()
        return message_to_dto(message)

    @staticmethod
    def _find_by_id(db: Session, message_id: str) -> Optional[ChatMessage]:
        message = db.query(Message).filter(Message.id == message_id).first()
        if message is None:
            return None
        return message_to_dto(message)
