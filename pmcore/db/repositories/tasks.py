"""
Task repository functions.

Listing and CRUD through the tasks `RecordStore` (detail reads join project,
assignee, creator and comment count), plus tags, per-project views, upcoming
deadlines and comments.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

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

TASKS = models.Task.__table__
TASK_TAGS = models.TaskTag.__table__
COMMENTS = models.Comment.__table__
USERS = models.User.__table__
PROJECTS = models.Project.__table__

MAX_TAG_LENGTH = 50

TASK_DETAIL = DetailProjection(
    joins=(
        "LEFT JOIN projects p ON p.id = t.project_id "
        "LEFT JOIN users au ON au.id = t.assigned_to "
        "LEFT JOIN users cu ON cu.id = t.created_by "
        "LEFT JOIN comments c ON c.entity_type = 'task' AND c.entity_id = t.id"
    ),
    columns=(
        ("p.name", "project_name", String()),
        ("au.name", "assignee_name", String()),
        ("au.avatar", "assignee_avatar", String()),
        ("cu.name", "creator_name", String()),
        ("COUNT(DISTINCT c.id)", "comment_count", Integer()),
    ),
    aggregate=True,
    group_by=("p.name", "au.name", "au.avatar", "cu.name"),
)

TASK_QUERY = QueryStrategy(
    alias="t",
    search_columns=("title", "description"),
    filters={
        "status": FilterField("status"),
        "priority": FilterField("priority"),
        "project_id": FilterField("project_id"),
        "assigned_to": FilterField("assigned_to"),
        "created_by": FilterField("created_by"),
        "parent_task_id": FilterField("parent_task_id"),
        "date_from": FilterField("created_at", ">="),
        "date_to": FilterField("created_at", "<="),
    },
    sortable=frozenset({"title", "status", "priority", "due_date", "created_at", "updated_at"}),
    detail=TASK_DETAIL,
)


def task_store(db: Database) -> RecordStore:
    return RecordStore(db, TASKS, TASK_QUERY)


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Strip, drop blanks and de-duplicate while keeping first-seen order."""
    seen: Dict[str, None] = {}
    for tag in tags or ():
        if not isinstance(tag, str):
            raise ValidationError(f"Tag must be a string, got {tag!r}")
        name = tag.strip()
        if not name:
            continue
        if len(name) > MAX_TAG_LENGTH:
            raise ValidationError(f"Tag too long: {name!r}")
        seen.setdefault(name, None)
    return list(seen)


def _require_id(store: RecordStore, value, what: str = "task"):
    key = store.coerce_id(value)
    if key is None:
        raise ValidationError(f"Invalid {what} id: {value!r}")
    return key


async def list_tasks(
    db: Database, filters: Optional[QueryFilters] = None, *, detailed: bool = True, timeout: Optional[float] = None
) -> PageResult:
    return await task_store(db).list(filters, detailed=detailed, timeout=timeout)


async def get_task(db: Database, task_id, *, detailed: bool = True, timeout: Optional[float] = None):
    return await task_store(db).find_by_id(task_id, detailed=detailed, timeout=timeout)


async def create_task(
    db: Database,
    fields: Mapping[str, Any],
    *,
    tags: Optional[Iterable[str]] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """Insert a task and its tags in one transaction.

    Unset status/priority fall back to the column defaults. Tags are
    validated before anything is written.
    """
    names = normalize_tags(tags)
    store = task_store(db)
    stmt = store.insert_statement({k: v for k, v in dict(fields).items() if v is not None})
    async with store.operation("create_task", timeout):
        async with db.begin() as conn:
            task = dict((await conn.execute(stmt)).mappings().one())
            if names:
                await conn.execute(
                    TASK_TAGS.insert(),
                    [{"task_id": task["id"], "tag_name": name, "created_at": task["created_at"]} for name in names],
                )
    return task


async def update_task(db: Database, task_id, fields: Mapping[str, Any], *, timeout: Optional[float] = None):
    return await task_store(db).update(task_id, fields, timeout=timeout)


async def delete_task(db: Database, task_id, *, timeout: Optional[float] = None) -> bool:
    return await task_store(db).delete(task_id, timeout=timeout)


async def list_tasks_for_project(
    db: Database, project_id, *, status: Optional[str] = None, timeout: Optional[float] = None
) -> List[Dict[str, Any]]:
    """All tasks of a project with assignee name/avatar, newest first."""
    store = task_store(db)
    key = store.coerce_id(project_id)
    if key is None:
        return []
    stmt = (
        select(TASKS, USERS.c.name.label("assignee_name"), USERS.c.avatar.label("assignee_avatar"))
        .select_from(TASKS.outerjoin(USERS, USERS.c.id == TASKS.c.assigned_to))
        .where(TASKS.c.project_id == key)
        .order_by(TASKS.c.created_at.desc(), TASKS.c.id)
    )
    if status:
        stmt = stmt.where(TASKS.c.status == status)
    return await store.fetch_all(stmt, operation="list_tasks_for_project", timeout=timeout)


async def get_task_stats(
    db: Database, *, project_id=None, user_id=None, timeout: Optional[float] = None
) -> Dict[str, int]:
    """Task counts by status (and overdue) for a project and/or assignee."""
    store = task_store(db)
    now = models.now_utc()

    def _count(condition):
        return func.count(case((condition, TASKS.c.id)))

    stmt = select(
        func.count(TASKS.c.id).label("total_tasks"),
        _count(TASKS.c.status == "done").label("done_tasks"),
        _count(TASKS.c.status == "in-progress").label("in_progress_tasks"),
        _count(TASKS.c.status == "todo").label("todo_tasks"),
        _count(TASKS.c.status == "blocked").label("blocked_tasks"),
        _count((TASKS.c.due_date < now) & (TASKS.c.status != "done")).label("overdue_tasks"),
    )
    if project_id is not None:
        stmt = stmt.where(TASKS.c.project_id == _require_id(store, project_id, "project"))
    if user_id is not None:
        stmt = stmt.where(TASKS.c.assigned_to == _require_id(store, user_id, "user"))
    row = await store.fetch_one(stmt, operation="get_task_stats", timeout=timeout)
    return {k: int(v or 0) for k, v in (row or {}).items()}


async def add_task_tags(db: Database, task_id, tags: Iterable[str], *, timeout: Optional[float] = None) -> List[str]:
    """Attach tags to a task; tags it already carries are left as they are."""
    store = task_store(db)
    key = _require_id(store, task_id)
    names = normalize_tags(tags)
    if names:
        stmt = dialect_insert(db, TASK_TAGS).on_conflict_do_nothing(index_elements=["task_id", "tag_name"])
        rows = [{"task_id": key, "tag_name": name, "created_at": models.now_utc()} for name in names]
        async with store.operation("add_task_tags", timeout):
            async with db.begin() as conn:
                await conn.execute(stmt, rows)
    return await get_task_tags(db, key, timeout=timeout)


async def replace_task_tags(
    db: Database, task_id, tags: Iterable[str], *, timeout: Optional[float] = None
) -> List[str]:
    """Replace the full tag set of a task in one transaction."""
    store = task_store(db)
    key = _require_id(store, task_id)
    names = normalize_tags(tags)
    async with store.operation("replace_task_tags", timeout):
        async with db.begin() as conn:
            await conn.execute(delete(TASK_TAGS).where(TASK_TAGS.c.task_id == key))
            if names:
                now = models.now_utc()
                await conn.execute(
                    TASK_TAGS.insert(),
                    [{"task_id": key, "tag_name": name, "created_at": now} for name in names],
                )
    return sorted(names)


async def get_task_tags(db: Database, task_id, *, timeout: Optional[float] = None) -> List[str]:
    store = task_store(db)
    key = store.coerce_id(task_id)
    if key is None:
        return []
    stmt = select(TASK_TAGS.c.tag_name).where(TASK_TAGS.c.task_id == key).order_by(TASK_TAGS.c.tag_name)
    rows = await store.fetch_all(stmt, operation="get_task_tags", timeout=timeout)
    return [row["tag_name"] for row in rows]


async def list_upcoming_tasks(
    db: Database, days: int = 7, user_id=None, *, timeout: Optional[float] = None
) -> List[Dict[str, Any]]:
    """Unfinished tasks due between now and ``days`` from now, soonest first."""
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise ValidationError(f"days must be a non-negative integer, got {days!r}")
    store = task_store(db)
    now = models.now_utc()
    stmt = (
        select(TASKS, PROJECTS.c.name.label("project_name"), USERS.c.name.label("assignee_name"))
        .select_from(
            TASKS.outerjoin(PROJECTS, PROJECTS.c.id == TASKS.c.project_id)
            .outerjoin(USERS, USERS.c.id == TASKS.c.assigned_to)
        )
        .where(
            TASKS.c.due_date.between(now, now + timedelta(days=days)),
            TASKS.c.status != "done",
        )
        .order_by(TASKS.c.due_date.asc(), TASKS.c.id)
    )
    if user_id is not None:
        user_key = store.coerce_id(user_id)
        if user_key is None:
            raise ValidationError(f"Invalid user id: {user_id!r}")
        stmt = stmt.where(TASKS.c.assigned_to == user_key)
    return await store.fetch_all(stmt, operation="list_upcoming_tasks", timeout=timeout)


async def list_task_comments(db: Database, task_id, *, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
    """Comments on a task with author name/avatar, oldest first."""
    store = task_store(db)
    key = store.coerce_id(task_id)
    if key is None:
        return []
    stmt = (
        select(COMMENTS, USERS.c.name.label("author_name"), USERS.c.avatar.label("author_avatar"))
        .select_from(COMMENTS.outerjoin(USERS, USERS.c.id == COMMENTS.c.created_by))
        .where(COMMENTS.c.entity_type == "task", COMMENTS.c.entity_id == key)
        .order_by(COMMENTS.c.created_at.asc(), COMMENTS.c.id)
    )
    return await store.fetch_all(stmt, operation="list_task_comments", timeout=timeout)
