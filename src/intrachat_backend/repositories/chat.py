from typing import Optional
from sqlalchemy.orm import Session

from .base import SqlRepository
from ..model.base import utcnow
from ..model.chat import Chat, ChatMember
from ..model.organization import UserDepartment, UserTeam
from intrachat_types.messages import RoomMeta


class ChatRepository(SqlRepository):
    """Room lookups and the best-effort activity bump."""

    async def find_active_by_id(self, room_id: str) -> Optional[RoomMeta]:
        return await self._run(self._find_active_by_id, room_id)

    async def touch_activity(self, room_id: str) -> None:
        await self._run(self._touch_activity, room_id)

    @staticmethod
    def _find_active_by_id(db: Session, room_id: str) -> Optional[RoomMeta]:
        chat = (
            db.query(Chat)
            .filter(Chat.id == room_id, Chat.is_archived.is_(False))
            .first()
        )
        if chat is None:
            return None
        return RoomMeta.model_validate(chat)

    @staticmethod
    def _touch_activity(db: Session, room_id: str) -> None:
        db.query(Chat).filter(Chat.id == room_id).update(
            {Chat.last_message_at: utcnow()},
            synchronize_session=False,
        )


class ChatMembershipRepository(SqlRepository):
    """
    Authorization for joining a chat.

    A user may join when they hold an active explicit membership, or when
    the chat is a public department/team chat of a department/team they
    belong to.
    """

    async def is_authorized(self, user_id: str, room_id: str) -> bool:
        return await self._run(self._is_authorized, user_id, room_id)

    @staticmethod
    def _is_authorized(db: Session, user_id: str, room_id: str) -> bool:
        chat = (
            db.query(Chat)
            .filter(Chat.id == room_id, Chat.is_archived.is_(False))
            .first()
        )
        if chat is None:
            return False

        is_member = db.query(
            db.query(ChatMember.id)
            .filter(
                ChatMember.chat_id == room_id,
                ChatMember.user_id == user_id,
                ChatMember.is_active.is_(True),
            )
            .exists()
        ).scalar()

        if is_member:
            return True

        if chat.is_private:
            return False

        if chat.type == "department" and chat.department_id:
            return bool(db.query(
                db.query(UserDepartment.id)
                .filter(
                    UserDepartment.user_id == user_id,
                    UserDepartment.department_id == chat.department_id,
                )
                .exists()
            ).scalar())

        if chat.type == "team" and chat.team_id:
            return bool(db.query(
                db.query(UserTeam.id)
                .filter(
                    UserTeam.user_id == user_id,
                    UserTeam.team_id == chat.team_id,
                )
                .exists()
            ).scalar())

        return False
