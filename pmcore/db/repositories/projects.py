"""
Project repository functions.

Listing and CRUD through the projects `RecordStore` (detail reads add member
and task counts), plus project membership management.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import Integer, String, case, delete, func, select

from pmcore.db import models
from pmcore.db.database import Database
from pmcore.db.errors import ValidationError
from pmcore.db.schemas.filters import QueryFilters
from pmcore.db.repositories.base import (
    DetailProjection,
    FilterField,
    PageResult,
    QueryStrategy,
    RecordStore,
    dialect_insert,
)

logger = logging.getLogger(__name__)

PROJECTS = models.Project.__table__
PROJECT_MEMBERS = models.ProjectMember.__table__

MEMBER_ROLES = ("owner", "manager", "member", "viewer")

# Members and tasks are both one-to-many from the project; DISTINCT keeps the
# two joins from multiplying each other's counts.
PROJECT_DETAIL = DetailProjection(
    joins=(
        "LEFT JOIN project_members pm ON pm.project_id = p.id "
        "LEFT JOIN tasks t ON t.project_id = p.id "
        "LEFT JOIN users cu ON cu.id = p.created_by"
    ),
    columns=(
        ("COUNT(DISTINCT pm.id)", "member_count", Integer()),
        ("COUNT(DISTINCT t.id)", "task_count", Integer()),
        ("COUNT(DISTINCT CASE WHEN t.status = 'done' THEN t.id END)", "completed_task_count", Integer()),
        ("cu.name", "created_by_name", String()),
    ),
    aggregate=True,
    group_by=("cu.name",),
)

PROJECT_QUERY = QueryStrategy(
    alias="p",
    search_columns=("name", "description"),
    filters={
        "status": FilterField("status"),
        "priority": FilterField("priority"),
        "created_by": FilterField("created_by"),
        "progress": FilterField("progress"),
        "date_from": FilterField("created_at", ">="),
        "date_to": FilterField("created_at", "<="),
    },
    sortable=frozenset({
        "name", "status", "priority", "progress", "start_date", "due_date", "created_at", "updated_at",
    }),
    detail=PROJECT_DETAIL,
)


def project_store(db: Database) -> RecordStore:
    return RecordStore(db, PROJECTS, PROJECT_QUERY)


async def list_projects(
    db: Database, filters: Optional[QueryFilters] = None, *, detailed: bool = True, timeout: Optional[float] = None
) -> PageResult:
    return await project_store(db).list(filters, detailed=detailed, timeout=timeout)


async def get_project(db: Database, project_id, *, detailed: bool = True, timeout: Optional[float] = None):
    return await project_store(db).find_by_id(project_id, detailed=detailed, timeout=timeout)


async def create_project(db: Database, fields: Mapping[str, Any], *, timeout: Optional[float] = None) -> Dict[str, Any]:
    return await project_store(db).create(fields, timeout=timeout)


async def update_project(db: Database, project_id, fields: Mapping[str, Any], *, timeout: Optional[float] = None):
    return await project_store(db).update(project_id, fields, timeout=timeout)


async def delete_project(db: Database, project_id, *, timeout: Optional[float] = None) -> bool:
    return await project_store(db).delete(project_id, timeout=timeout)


async def update_project_progress(db: Database, project_id, progress: int, *, timeout: Optional[float] = None):
    if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
        raise ValidationError(f"Progress must be an integer between 0 and 100, got {progress!r}")
    return await project_store(db).update(project_id, {"progress": progress}, timeout=timeout)


async def archive_project(db: Database, project_id, *, timeout: Optional[float] = None):
    """Soft delete: status becomes 'archived' and ``archived_at`` is stamped."""
    return await project_store(db).update(
        project_id, {"status": "archived", "archived_at": models.now_utc()}, timeout=timeout
    )


def _member_keys(store: RecordStore, project_id, user_id):
    project_key = store.coerce_id(project_id)
    user_key = store.coerce_id(user_id)
    if project_key is None or user_key is None:
        raise ValidationError("Invalid project or user id")
    return project_key, user_key


async def add_project_member(
    db: Database, project_id, user_id, role: str = "member", *, timeout: Optional[float] = None
) -> Dict[str, Any]:
    """Add a member, or change the role (and rejoin time) of an existing one."""
    if role not in MEMBER_ROLES:
        raise ValidationError(f"Invalid member role: {role!r}")
    store = project_store(db)
    project_key, user_key = _member_keys(store, project_id, user_id)
    stmt = dialect_insert(db, PROJECT_MEMBERS).values(
        project_id=project_key, user_id=user_key, role=role, joined_at=models.now_utc()
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["project_id", "user_id"],
        set_={"role": stmt.excluded.role, "joined_at": stmt.excluded.joined_at},
    ).returning(*PROJECT_MEMBERS.c)
    async with store.operation("add_project_member", timeout):
        async with db.begin() as conn:
            row = (await conn.execute(stmt)).mappings().one()
    return dict(row)


async def remove_project_member(db: Database, project_id, user_id, *, timeout: Optional[float] = None) -> bool:
    store = project_store(db)
    project_key = store.coerce_id(project_id)
    user_key = store.coerce_id(user_id)
    if project_key is None or user_key is None:
        return False
    stmt = delete(PROJECT_MEMBERS).where(
        PROJECT_MEMBERS.c.project_id == project_key,
        PROJECT_MEMBERS.c.user_id == user_key,
    )
    return await store.execute(stmt, operation="remove_project_member", timeout=timeout) > 0


async def list_project_members(db: Database, project_id, *, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
    """Active members of a project with their user profile fields, by role then name."""
    store = project_store(db)
    key = store.coerce_id(project_id)
    if key is None:
        return []
    users = models.User.__table__
    stmt = (
        select(
            PROJECT_MEMBERS,
            users.c.name,
            users.c.email,
            users.c.avatar,
            users.c.title,
            users.c.department,
            users.c.status,
        )
        .select_from(PROJECT_MEMBERS.join(users, users.c.id == PROJECT_MEMBERS.c.user_id))
        .where(PROJECT_MEMBERS.c.project_id == key, users.c.is_active.is_(True))
        .order_by(PROJECT_MEMBERS.c.role, users.c.name)
    )
    return await store.fetch_all(stmt, operation="list_project_members", timeout=timeout)


async def list_projects_for_user(db: Database, user_id, *, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
    """Projects the user is a member of, with their role and task counts, most recently updated first."""
    store = project_store(db)
    key = store.coerce_id(user_id)
    if key is None:
        return []
    tasks = models.Task.__table__
    task_count = (
        select(func.count(tasks.c.id))
        .where(tasks.c.project_id == PROJECTS.c.id)
        .scalar_subquery()
    )
    completed_task_count = (
        select(func.count(case((tasks.c.status == "done", tasks.c.id))))
        .where(tasks.c.project_id == PROJECTS.c.id)
        .scalar_subquery()
    )
    stmt = (
        select(
            PROJECTS,
            PROJECT_MEMBERS.c.role.label("user_role"),
            task_count.label("task_count"),
            completed_task_count.label("completed_task_count"),
        )
        .select_from(PROJECTS.join(PROJECT_MEMBERS, PROJECT_MEMBERS.c.project_id == PROJECTS.c.id))
        .where(PROJECT_MEMBERS.c.user_id == key)
        .order_by(PROJECTS.c.updated_at.desc(), PROJECTS.c.id)
    )
    return await store.fetch_all(stmt, operation="list_projects_for_user", timeout=timeout)
