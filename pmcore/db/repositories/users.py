"""
User repository functions.

Generic listing/CRUD goes through the users `RecordStore`; the functions below
cover lookups by email, per-user settings and the team roster.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import case, distinct, func, select, update

from pmcore.db import models
from pmcore.db.database import Database
from pmcore.db.errors import ValidationError
from pmcore.db.schemas.filters import QueryFilters
from pmcore.db.repositories.base import (
    FilterField,
    PageResult,
    QueryStrategy,
    RecordStore,
    dialect_insert,
)

logger = logging.getLogger(__name__)

USERS = models.User.__table__
USER_SETTINGS = models.UserSettings.__table__

USER_STATUSES = ("online", "away", "offline")

USER_QUERY = QueryStrategy(
    alias="u",
    search_columns=("name", "email", "department"),
    filters={
        "status": FilterField("status"),
        "department": FilterField("department"),
        "role": FilterField("role"),
        "is_active": FilterField("is_active"),
    },
    sortable=frozenset({
        "name", "email", "role", "department", "status", "created_at", "updated_at", "last_login",
    }),
)

# Columns owned by the settings row itself rather than by the user.
_SETTINGS_KEYS = ("id", "user_id", "created_at", "updated_at")


def user_store(db: Database) -> RecordStore:
    return RecordStore(db, USERS, USER_QUERY)


async def list_users(db: Database, filters: Optional[QueryFilters] = None, *, timeout: Optional[float] = None) -> PageResult:
    return await user_store(db).list(filters, timeout=timeout)


async def get_user(db: Database, user_id, *, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
    return await user_store(db).find_by_id(user_id, timeout=timeout)


async def create_user(db: Database, fields: Mapping[str, Any], *, timeout: Optional[float] = None) -> Dict[str, Any]:
    """Insert a user row. ``password_hash`` must already be hashed by the caller."""
    return await user_store(db).create(fields, timeout=timeout)


async def update_user(db: Database, user_id, fields: Mapping[str, Any], *, timeout: Optional[float] = None):
    return await user_store(db).update(user_id, fields, timeout=timeout)


async def delete_user(db: Database, user_id, *, timeout: Optional[float] = None) -> bool:
    return await user_store(db).delete(user_id, timeout=timeout)


async def find_user_by_email(db: Database, email: str, *, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """Active user with this email (case-insensitive), or None."""
    if not email:
        return None
    stmt = select(USERS).where(
        func.lower(USERS.c.email) == email.strip().lower(),
        USERS.c.is_active.is_(True),
    )
    return await user_store(db).fetch_one(stmt, operation="find_user_by_email", timeout=timeout)


async def find_user_with_settings(db: Database, user_id, *, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """Active user row with its settings nested under ``"settings"`` (None when never created)."""
    store = user_store(db)
    key = store.coerce_id(user_id)
    if key is None:
        return None
    settings_cols = [c.label(f"settings_{c.name}") for c in USER_SETTINGS.c if c.name not in _SETTINGS_KEYS]
    stmt = (
        select(USERS, USER_SETTINGS.c.id.label("settings_id"), *settings_cols)
        .select_from(USERS.outerjoin(USER_SETTINGS, USER_SETTINGS.c.user_id == USERS.c.id))
        .where(USERS.c.id == key, USERS.c.is_active.is_(True))
    )
    row = await store.fetch_one(stmt, operation="find_user_with_settings", timeout=timeout)
    if row is None:
        return None
    has_settings = row.pop("settings_id") is not None
    settings = {k[len("settings_"):]: row.pop(k) for k in list(row) if k.startswith("settings_")}
    row["settings"] = settings if has_settings else None
    return row


async def list_team_members(
    db: Database, *, department: Optional[str] = None, timeout: Optional[float] = None
) -> List[Dict[str, Any]]:
    """Active users ordered by name, with project and task counts."""
    pm = models.ProjectMember.__table__
    projects = models.Project.__table__
    tasks = models.Task.__table__

    active_projects = (
        select(func.count(distinct(pm.c.project_id)))
        .select_from(pm.join(projects, projects.c.id == pm.c.project_id))
        .where(pm.c.user_id == USERS.c.id, projects.c.status == "active")
        .scalar_subquery()
    )
    task_counts = (
        select(
            tasks.c.assigned_to.label("user_id"),
            func.count(tasks.c.id).label("total_tasks"),
            func.count(case((tasks.c.status == "done", tasks.c.id))).label("completed_tasks"),
        )
        .group_by(tasks.c.assigned_to)
        .subquery()
    )
    stmt = (
        select(
            USERS,
            active_projects.label("active_projects"),
            func.coalesce(task_counts.c.total_tasks, 0).label("total_tasks"),
            func.coalesce(task_counts.c.completed_tasks, 0).label("completed_tasks"),
        )
        .select_from(USERS.outerjoin(task_counts, task_counts.c.user_id == USERS.c.id))
        .where(USERS.c.is_active.is_(True))
        .order_by(USERS.c.name, USERS.c.id)
    )
    if department:
        stmt = stmt.where(USERS.c.department == department)
    return await user_store(db).fetch_all(stmt, operation="list_team_members", timeout=timeout)


async def update_user_status(db: Database, user_id, status: str, *, timeout: Optional[float] = None) -> bool:
    if status not in USER_STATUSES:
        raise ValidationError(f"Invalid user status: {status!r}")
    return await user_store(db).update(user_id, {"status": status}, timeout=timeout) is not None


async def deactivate_user(db: Database, user_id, *, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """Soft delete: the row stays, ``is_active`` goes false."""
    return await user_store(db).update(user_id, {"is_active": False}, timeout=timeout)


def _settings_store(db: Database) -> RecordStore:
    return RecordStore(db, USER_SETTINGS, QueryStrategy(alias="us"))


async def get_user_settings(db: Database, user_id, *, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
    store = _settings_store(db)
    key = store.coerce_id(user_id)
    if key is None:
        return None
    stmt = select(USER_SETTINGS).where(USER_SETTINGS.c.user_id == key)
    return await store.fetch_one(stmt, operation="get_user_settings", timeout=timeout)


async def update_user_settings(
    db: Database, user_id, settings: Mapping[str, Any], *, timeout: Optional[float] = None
) -> Optional[Dict[str, Any]]:
    """Partial update of a user's settings row; None when the user has none."""
    store = _settings_store(db)
    values = store.prepare_values({k: v for k, v in dict(settings or {}).items() if k != "user_id"}, "update_user_settings")
    key = store.coerce_id(user_id)
    if key is None:
        return None
    values["updated_at"] = models.now_utc()
    stmt = (
        update(USER_SETTINGS)
        .where(USER_SETTINGS.c.user_id == key)
        .values(**values)
        .returning(*USER_SETTINGS.c)
    )
    async with store.operation("update_user_settings", timeout):
        async with db.begin() as conn:
            row = (await conn.execute(stmt)).mappings().first()
    if row is None:
        logger.warning(f"No settings row for user {user_id}")
        return None
    return dict(row)


async def create_default_settings(db: Database, user_id, *, timeout: Optional[float] = None) -> None:
    """Insert a defaults-only settings row; an existing row is left untouched."""
    store = _settings_store(db)
    key = store.coerce_id(user_id)
    if key is None:
        raise ValidationError(f"Invalid user id: {user_id!r}")
    now = models.now_utc()
    stmt = (
        dialect_insert(db, USER_SETTINGS)
        .values(user_id=key, created_at=now, updated_at=now)
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    await store.execute(stmt, operation="create_default_settings", timeout=timeout)
