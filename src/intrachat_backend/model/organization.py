from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow


class Department(Base):
    __tablename__ = 'department'

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    name = Column(String(255), unique=True, nullable=False)


class Team(Base):
    __tablename__ = 'team'

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    name = Column(String(255), nullable=False)
    department_id = Column(ForeignKey('department.id', ondelete='SET NULL'))

    department = relationship('Department')


class UserDepartment(Base):
    __tablename__ = 'user_department'
    __table_args__ = (
        Index('user_department_unique_idx', 'user_id', 'department_id', unique=True),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    department_id = Column(ForeignKey('department.id', ondelete='CASCADE'), nullable=False)

    user = relationship('User', back_populates='user_departments')
    department = relationship('Department')


class UserTeam(Base):
    __tablename__ = 'user_team'
    __table_args__ = (
        Index('user_team_unique_idx', 'user_id', 'team_id', unique=True),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    team_id = Column(ForeignKey('team.id', ondelete='CASCADE'), nullable=False)

    user = relationship('User', back_populates='user_teams')
    team = relationship('Team')
