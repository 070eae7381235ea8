from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow


class User(Base):
    __tablename__ = 'user'

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    email = Column(String(320), unique=True, nullable=False)
    username = Column(String(255), unique=True)
    first_name = Column(String(255))
    last_name = Column(String(255))
    avatar = Column(String(2048))
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    user_roles = relationship("UserRole", back_populates="user", uselist=True, lazy="select")
    user_departments = relationship("UserDepartment", back_populates="user", uselist=True, lazy="select")
    user_teams = relationship("UserTeam", back_populates="user", uselist=True, lazy="select")


class Role(Base):
    __tablename__ = 'role'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(String(1024))


class UserRole(Base):
    __tablename__ = 'user_role'
    __table_args__ = (
        Index('user_role_unique_idx', 'user_id', 'role_id', unique=True),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    role_id = Column(ForeignKey('role.id', ondelete='CASCADE'), nullable=False)

    user = relationship('User', back_populates='user_roles')
    role = relationship('Role', lazy="joined")
