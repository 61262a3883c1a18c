import uuid
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

UserRole = Literal['admin', 'manager', 'member']
UserStatus = Literal['online', 'away', 'offline']
EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    role: Optional[UserRole] = None
    department: Optional[str] = Field(default=None, min_length=1, max_length=100)
    title: Optional[str] = Field(default=None, max_length=100)
    avatar: Optional[str] = Field(default=None, max_length=500)
    timezone: Optional[str] = None
    language: Optional[str] = None
    status: Optional[UserStatus] = None


class User(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    avatar: Optional[str] = None
    role: str
    department: Optional[str] = None
    title: Optional[str] = None
    status: str
    timezone: str
    language: str
    created_at: datetime
    updated_at: datetime
    last_login: Optional[datetime] = None
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class TeamMember(User):
    active_projects: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0


class UserSettingsUpdate(BaseModel):
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    task_reminders: Optional[bool] = None
    project_updates: Optional[bool] = None
    team_mentions: Optional[bool] = None
    weekly_digest: Optional[bool] = None
    theme: Optional[Literal['light', 'dark', 'auto']] = None
    compact_mode: Optional[bool] = None
    show_avatars: Optional[bool] = None
    animations_enabled: Optional[bool] = None
    default_view: Optional[Literal['dashboard', 'projects', 'tasks']] = None
    items_per_page: Optional[int] = Field(default=None, ge=1, le=100)
    auto_save: Optional[bool] = None
    show_completed_tasks: Optional[bool] = None


class UserSettings(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    email_notifications: bool
    push_notifications: bool
    task_reminders: bool
    project_updates: bool
    team_mentions: bool
    weekly_digest: bool
    theme: str
    compact_mode: bool
    show_avatars: bool
    animations_enabled: bool
    default_view: str
    items_per_page: int
    auto_save: bool
    show_completed_tasks: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
