import uuid
from sqlalchemy import Column, String, DateTime, Boolean, Integer, ForeignKey, CheckConstraint, Uuid
from .base import Base, now_utc


class User(Base):
    __tablename__ = 'users'
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    avatar = Column(String(500), nullable=True)
    role = Column(String(50), nullable=False, default='member', server_default='member')
    department = Column(String(100), nullable=True)
    title = Column(String(100), nullable=True)
    # Presence: 'online'|'away'|'offline'
    status = Column(String(20), nullable=False, default='offline', server_default='offline')
    timezone = Column(String(50), nullable=False, default='UTC', server_default='UTC')
    language = Column(String(10), nullable=False, default='en', server_default='en')
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc)
    last_login = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default='1')

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'manager', 'member')", name='ck_users_role'),
        CheckConstraint("status IN ('online', 'away', 'offline')", name='ck_users_status'),
    )


class UserSettings(Base):
    __tablename__ = 'user_settings'
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    email_notifications = Column(Boolean, nullable=False, default=True)
    push_notifications = Column(Boolean, nullable=False, default=True)
    task_reminders = Column(Boolean, nullable=False, default=True)
    project_updates = Column(Boolean, nullable=False, default=True)
    team_mentions = Column(Boolean, nullable=False, default=True)
    weekly_digest = Column(Boolean, nullable=False, default=False)
    theme = Column(String(10), nullable=False, default='dark')
    compact_mode = Column(Boolean, nullable=False, default=False)
    show_avatars = Column(Boolean, nullable=False, default=True)
    animations_enabled = Column(Boolean, nullable=False, default=True)
    default_view = Column(String(20), nullable=False, default='dashboard')
    items_per_page = Column(Integer, nullable=False, default=20)
    auto_save = Column(Boolean, nullable=False, default=True)
    show_completed_tasks = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        CheckConstraint("theme IN ('light', 'dark', 'auto')", name='ck_user_settings_theme'),
        CheckConstraint("default_view IN ('dashboard', 'projects', 'tasks')", name='ck_user_settings_default_view'),
    )
