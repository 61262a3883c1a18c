"""
Projects API endpoints.

CRUD with member/task counts on reads, membership management and task stats.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from pmcore.api.deps import build_filters, get_database, page_response, paging_params
from pmcore.db import schemas
from pmcore.db.database import Database
from pmcore.db.errors import NotFoundError
from pmcore.db.repositories import projects as project_repo
from pmcore.db.repositories import tasks as task_repo

router = APIRouter(prefix="/projects", tags=["projects"])


async def _require_project(db: Database, project_id: str) -> dict:
    project = await project_repo.get_project(db, project_id, detailed=False)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


@router.get("", response_model=schemas.Page[schemas.ProjectDetail])
async def list_projects_endpoint(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    created_by: Optional[str] = None,
    progress: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    paging: dict = Depends(paging_params),
    db: Database = Depends(get_database),
):
    filters = build_filters(
        paging,
        status=status,
        priority=priority,
        created_by=created_by,
        progress=progress,
        date_from=date_from,
        date_to=date_to,
    )
    result = await project_repo.list_projects(db, filters)
    return page_response(result, filters, schemas.ProjectDetail)


@router.post("", response_model=schemas.Project, status_code=status.HTTP_201_CREATED)
async def create_project_endpoint(payload: schemas.ProjectCreate, db: Database = Depends(get_database)):
    return await project_repo.create_project(db, payload.model_dump(exclude_none=True))


@router.get("/{project_id}", response_model=schemas.ProjectDetail)
async def get_project_endpoint(project_id: str, db: Database = Depends(get_database)):
    project = await project_repo.get_project(db, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.patch("/{project_id}", response_model=schemas.Project)
async def update_project_endpoint(
    project_id: str, payload: schemas.ProjectUpdate, db: Database = Depends(get_database)
):
    project = await project_repo.update_project(db, project_id, payload.model_dump(exclude_unset=True))
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project_endpoint(project_id: str, db: Database = Depends(get_database)):
    if not await project_repo.delete_project(db, project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}/members", response_model=List[schemas.ProjectMember])
async def list_members_endpoint(project_id: str, db: Database = Depends(get_database)):
    await _require_project(db, project_id)
    return await project_repo.list_project_members(db, project_id)


@router.put("/{project_id}/members/{user_id}", response_model=schemas.ProjectMember)
async def upsert_member_endpoint(
    project_id: str,
    user_id: str,
    payload: schemas.ProjectMemberUpsert,
    db: Database = Depends(get_database),
):
    await _require_project(db, project_id)
    return await project_repo.add_project_member(db, project_id, user_id, payload.role)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member_endpoint(project_id: str, user_id: str, db: Database = Depends(get_database)):
    if not await project_repo.remove_project_member(db, project_id, user_id):
        raise HTTPException(status_code=404, detail="Member not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}/stats", response_model=schemas.TaskStats)
async def project_stats_endpoint(project_id: str, db: Database = Depends(get_database)):
    project = await _require_project(db, project_id)
    return await task_repo.get_task_stats(db, project_id=project["id"])
