from .base import Base, metadata
from .auth import User, Role, UserRole
from .organization import Department, Team, UserDepartment, UserTeam
from .chat import Chat, ChatMember, Message

__all__ = [
    'Base',
    'metadata',
    'User',
    'Role',
    'UserRole',
    'Department',
    'Team',
    'UserDepartment',
    'UserTeam',
    'Chat',
    'ChatMember',
    'Message',
]
