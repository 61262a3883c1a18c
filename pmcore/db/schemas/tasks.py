import uuid
from datetime import datetime
from typing import Annotated, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

TaskStatus = Literal['todo', 'in-progress', 'review', 'done', 'blocked']
Priority = Literal['low', 'medium', 'high', 'urgent']
TagName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class TaskCreate(BaseModel):
    title: str = Field(min_length=2, max_length=255)
    description: Optional[str] = Field(default=None, min_length=5, max_length=2000)
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    project_id: uuid.UUID
    assigned_to: Optional[uuid.UUID] = None
    created_by: uuid.UUID
    parent_task_id: Optional[uuid.UUID] = None
    estimated_hours: Optional[float] = Field(default=None, gt=0, le=1000)
    actual_hours: Optional[float] = Field(default=None, gt=0, le=1000)
    due_date: Optional[datetime] = None
    tags: List[TagName] = Field(default_factory=list, max_length=10)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=2, max_length=255)
    description: Optional[str] = Field(default=None, min_length=5, max_length=2000)
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    project_id: Optional[uuid.UUID] = None
    assigned_to: Optional[uuid.UUID] = None
    parent_task_id: Optional[uuid.UUID] = None
    estimated_hours: Optional[float] = Field(default=None, gt=0, le=1000)
    actual_hours: Optional[float] = Field(default=None, gt=0, le=1000)
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class Task(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    project_id: Optional[uuid.UUID] = None
    assigned_to: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    parent_task_id: Optional[uuid.UUID] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TaskDetail(Task):
    project_name: Optional[str] = None
    assignee_name: Optional[str] = None
    assignee_avatar: Optional[str] = None
    creator_name: Optional[str] = None
    comment_count: int = 0


class TaskTags(BaseModel):
    tags: List[TagName] = Field(default_factory=list, max_length=10)


class TaskStats(BaseModel):
    total_tasks: int = 0
    done_tasks: int = 0
    in_progress_tasks: int = 0
    todo_tasks: int = 0
    blocked_tasks: int = 0
    overdue_tasks: int = 0
