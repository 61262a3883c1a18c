import uuid
from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

ProjectStatus = Literal['planning', 'active', 'on-hold', 'completed', 'archived']
Priority = Literal['low', 'medium', 'high', 'urgent']
MemberRole = Literal['owner', 'manager', 'member', 'viewer']


def _check_dates(start_date, due_date):
    if start_date and due_date and start_date > due_date:
        raise ValueError("Start date must be before due date")


class ProjectCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    description: str = Field(min_length=10, max_length=2000)
    status: ProjectStatus = 'planning'
    priority: Priority = 'medium'
    progress: int = Field(default=0, ge=0, le=100)
    budget: Optional[float] = Field(default=None, gt=0)
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    created_by: uuid.UUID

    @model_validator(mode='after')
    def _dates_ordered(self):
        _check_dates(self.start_date, self.due_date)
        return self


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    description: Optional[str] = Field(default=None, min_length=10, max_length=2000)
    status: Optional[ProjectStatus] = None
    priority: Optional[Priority] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    budget: Optional[float] = Field(default=None, gt=0)
    start_date: Optional[date] = None
    due_date: Optional[date] = None

    @model_validator(mode='after')
    def _dates_ordered(self):
        _check_dates(self.start_date, self.due_date)
        return self


class Project(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    status: str
    priority: str
    progress: int
    budget: Optional[float] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ProjectDetail(Project):
    member_count: int = 0
    task_count: int = 0
    completed_task_count: int = 0
    created_by_name: Optional[str] = None


class ProjectMemberUpsert(BaseModel):
    role: MemberRole = 'member'


class ProjectMember(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    user_id: uuid.UUID
    role: str
    joined_at: datetime
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None
    status: Optional[str] = None
