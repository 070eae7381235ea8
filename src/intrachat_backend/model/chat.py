from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey,
    Index, String
)
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow


class Chat(Base):
    __tablename__ = 'chat'

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    name = Column(String(255), nullable=False)
    description = Column(String(1024))

    # direct, group, department, team, announcement
    type = Column(String(32), nullable=False, default='group')
    is_private = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False)
    last_message_at = Column(DateTime(timezone=True))

    department_id = Column(ForeignKey('department.id', ondelete='SET NULL'))
    team_id = Column(ForeignKey('team.id', ondelete='SET NULL'))

    chat_members = relationship('ChatMember', back_populates='chat', cascade='all, delete-orphan')


class ChatMember(Base):
    __tablename__ = 'chat_member'
    __table_args__ = (
        Index('chat_member_unique_idx', 'chat_id', 'user_id', unique=True),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    chat_id = Column(ForeignKey('chat.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    role = Column(String(32), nullable=False, default='member')
    is_active = Column(Boolean, nullable=False, default=True)

    chat = relationship('Chat', back_populates='chat_members')
    user = relationship('User')


class Message(Base):
    __tablename__ = 'message'
    __table_args__ = (
        Index('msg_chat_created_idx', 'chat_id', 'created_at'),
        Index('msg_sender_idx', 'sender_id'),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    chat_id = Column(ForeignKey('chat.id', ondelete='CASCADE'), nullable=False)
    sender_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False)

    # Threading
    reply_to_id = Column(ForeignKey('message.id', ondelete='SET NULL'))

    # Content
    content = Column(String(16384), nullable=False)
    type = Column(String(32), nullable=False, default='text')

    # Relationships
    chat = relationship('Chat', foreign_keys=[chat_id])
    sender = relationship('User', foreign_keys=[sender_id])
    reply_to = relationship('Message', remote_side=[id])
