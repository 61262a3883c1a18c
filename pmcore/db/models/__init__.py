"""
Domain-split SQLAlchemy models with a single import surface.

Exposes `Base`, `now_utc`, and all ORM classes. Stores work on the Core
`Table` objects (`Model.__table__`); the declarative classes are the schema
contract.
"""

from .base import Base, now_utc  # re-export

# Domain models
from .users import User, UserSettings
from .projects import Project, ProjectMember
from .tasks import Task, TaskTag, Comment

__all__ = [
    # base
    "Base",
    "now_utc",
    # users
    "User",
    "UserSettings",
    # projects
    "Project",
    "ProjectMember",
    # tasks
    "Task",
    "TaskTag",
    "Comment",
]
