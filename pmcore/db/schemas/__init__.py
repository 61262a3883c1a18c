"""
Domain-split Pydantic schemas with a single import surface.
"""

from .filters import QueryFilters, Pagination, Page, MAX_PAGE_SIZE, DEFAULT_PAGE_SIZE
from .users import UserUpdate, User, TeamMember, UserSettings, UserSettingsUpdate
from .projects import (
    ProjectCreate,
    ProjectUpdate,
    Project,
    ProjectDetail,
    ProjectMemberUpsert,
    ProjectMember,
)
from .tasks import TaskCreate, TaskUpdate, Task, TaskDetail, TaskTags, TaskStats

__all__ = [
    # listing
    "QueryFilters",
    "Pagination",
    "Page",
    "MAX_PAGE_SIZE",
    "DEFAULT_PAGE_SIZE",
    # users
    "UserUpdate",
    "User",
    "TeamMember",
    "UserSettings",
    "UserSettingsUpdate",
    # projects
    "ProjectCreate",
    "ProjectUpdate",
    "Project",
    "ProjectDetail",
    "ProjectMemberUpsert",
    "ProjectMember",
    # tasks
    "TaskCreate",
    "TaskUpdate",
    "Task",
    "TaskDetail",
    "TaskTags",
    "TaskStats",
]
