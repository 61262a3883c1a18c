"""
Tasks API endpoints.

CRUD with project/assignee details on reads, tags and upcoming deadlines.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from pmcore.api.deps import build_filters, get_database, page_response, paging_params
from pmcore.db import schemas
from pmcore.db.database import Database
from pmcore.db.errors import NotFoundError
from pmcore.db.repositories import tasks as task_repo

router = APIRouter(prefix="/tasks", tags=["tasks"])


async def _require_task(db: Database, task_id: str) -> dict:
    task = await task_repo.get_task(db, task_id, detailed=False)
    if task is None:
        raise NotFoundError("Task", task_id)
    return task


@router.get("", response_model=schemas.Page[schemas.TaskDetail])
async def list_tasks_endpoint(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    project_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    created_by: Optional[str] = None,
    parent_task_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    paging: dict = Depends(paging_params),
    db: Database = Depends(get_database),
):
    filters = build_filters(
        paging,
        status=status,
        priority=priority,
        project_id=project_id,
        assigned_to=assigned_to,
        created_by=created_by,
        parent_task_id=parent_task_id,
        date_from=date_from,
        date_to=date_to,
    )
    result = await task_repo.list_tasks(db, filters)
    return page_response(result, filters, schemas.TaskDetail)


@router.get("/upcoming", response_model=List[schemas.TaskDetail])
async def upcoming_tasks_endpoint(
    days: int = Query(7, ge=0, le=365),
    user_id: Optional[uuid.UUID] = None,
    db: Database = Depends(get_database),
):
    return await task_repo.list_upcoming_tasks(db, days, user_id)


@router.post("", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
async def create_task_endpoint(payload: schemas.TaskCreate, db: Database = Depends(get_database)):
    fields = payload.model_dump(exclude={"tags"}, exclude_none=True)
    return await task_repo.create_task(db, fields, tags=payload.tags)


@router.get("/{task_id}", response_model=schemas.TaskDetail)
async def get_task_endpoint(task_id: str, db: Database = Depends(get_database)):
    task = await task_repo.get_task(db, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.patch("/{task_id}", response_model=schemas.Task)
async def update_task_endpoint(task_id: str, payload: schemas.TaskUpdate, db: Database = Depends(get_database)):
    task = await task_repo.update_task(db, task_id, payload.model_dump(exclude_unset=True))
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_endpoint(task_id: str, db: Database = Depends(get_database)):
    if not await task_repo.delete_task(db, task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}/tags", response_model=schemas.TaskTags)
async def get_tags_endpoint(task_id: str, db: Database = Depends(get_database)):
    task = await _require_task(db, task_id)
    return {"tags": await task_repo.get_task_tags(db, task["id"])}


@router.put("/{task_id}/tags", response_model=schemas.TaskTags)
async def replace_tags_endpoint(task_id: str, payload: schemas.TaskTags, db: Database = Depends(get_database)):
    task = await _require_task(db, task_id)
    return {"tags": await task_repo.replace_task_tags(db, task["id"], payload.tags)}
