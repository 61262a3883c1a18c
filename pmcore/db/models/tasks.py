import uuid
from sqlalchemy import (
    Column, String, Text, DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint, Index, Uuid,
)
from .base import Base, now_utc


class Task(Base):
    __tablename__ = 'tasks'
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='todo', server_default='todo')
    priority = Column(String(20), nullable=False, default='medium', server_default='medium')
    project_id = Column(Uuid, ForeignKey('projects.id', ondelete='CASCADE'), nullable=True)
    assigned_to = Column(Uuid, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_by = Column(Uuid, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    parent_task_id = Column(Uuid, ForeignKey('tasks.id', ondelete='SET NULL'), nullable=True)
    estimated_hours = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    actual_hours = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        CheckConstraint(
            "status IN ('todo', 'in-progress', 'review', 'done', 'blocked')",
            name='ck_tasks_status',
        ),
        CheckConstraint("priority IN ('low', 'medium', 'high', 'urgent')", name='ck_tasks_priority'),
        Index('idx_tasks_status', 'status'),
        Index('idx_tasks_project_id', 'project_id'),
        Index('idx_tasks_assigned_to', 'assigned_to'),
        Index('idx_tasks_due_date', 'due_date'),
    )


class TaskTag(Base):
    __tablename__ = 'task_tags'
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    task_id = Column(Uuid, ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False)
    tag_name = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        UniqueConstraint('task_id', 'tag_name', name='uq_task_tags_task_tag'),
    )


class Comment(Base):
    __tablename__ = 'comments'
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    content = Column(Text, nullable=False)
    # Polymorphic target: 'task'|'project'|'file'
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Uuid, nullable=False)
    created_by = Column(Uuid, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    parent_comment_id = Column(Uuid, ForeignKey('comments.id', ondelete='CASCADE'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        CheckConstraint("entity_type IN ('task', 'project', 'file')", name='ck_comments_entity_type'),
        Index('idx_comments_entity', 'entity_type', 'entity_id'),
    )
