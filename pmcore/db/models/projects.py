import uuid
from sqlalchemy import (
    Column, String, Text, DateTime, Date, Integer, Numeric, ForeignKey, CheckConstraint,
    UniqueConstraint, Index, Uuid,
)
from .base import Base, now_utc


class Project(Base):
    __tablename__ = 'projects'
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='planning', server_default='planning')
    priority = Column(String(20), nullable=False, default='medium', server_default='medium')
    progress = Column(Integer, nullable=False, default=0, server_default='0')
    budget = Column(Numeric(15, 2, asdecimal=False), nullable=True)
    start_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    created_by = Column(Uuid, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('planning', 'active', 'on-hold', 'completed', 'archived')",
            name='ck_projects_status',
        ),
        CheckConstraint("priority IN ('low', 'medium', 'high', 'urgent')", name='ck_projects_priority'),
        CheckConstraint("progress >= 0 AND progress <= 100", name='ck_projects_progress'),
        Index('idx_projects_status', 'status'),
        Index('idx_projects_created_by', 'created_by'),
        Index('idx_projects_due_date', 'due_date'),
    )


class ProjectMember(Base):
    __tablename__ = 'project_members'
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role = Column(String(50), nullable=False, default='member', server_default='member')
    joined_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        UniqueConstraint('project_id', 'user_id', name='uq_project_members_project_user'),
        CheckConstraint("role IN ('owner', 'manager', 'member', 'viewer')", name='ck_project_members_role'),
    )
