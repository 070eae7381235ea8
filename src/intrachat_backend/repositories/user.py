from typing import Optional
from sqlalchemy.orm import Session, selectinload

from .base import SqlRepository
from ..model.auth import User, UserRole
from intrachat_types.auth import Identity


class UserRepository(SqlRepository):
    """Resolves token subjects to active users."""

    async def find_active_by_id(self, user_id: str) -> Optional[Identity]:
        return await self._run(self._find_active_by_id, user_id)

    @staticmethod
    def _find_active_by_id(db: Session, user_id: str) -> Optional[Identity]:
        user = (
            db.query(User)
            .options(selectinload(User.user_roles).joinedload(UserRole.role))
            .filter(User.id == user_id, User.is_active.is_(True))
            .first()
        )
        if user is None:
            return None

        return Identity(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            avatar=user.avatar,
            roles=[ur.role.name for ur in user.user_roles if ur.role is not None],
        )
