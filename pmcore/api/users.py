"""
Users API endpoints.

Listing, profile reads/updates, deactivation, team roster and settings.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from pmcore.api.deps import build_filters, get_database, page_response, paging_params
from pmcore.db import schemas
from pmcore.db.database import Database
from pmcore.db.repositories import users as user_repo

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=schemas.Page[schemas.User])
async def list_users_endpoint(
    status: Optional[str] = None,
    department: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    paging: dict = Depends(paging_params),
    db: Database = Depends(get_database),
):
    filters = build_filters(paging, status=status, department=department, role=role, is_active=is_active)
    result = await user_repo.list_users(db, filters)
    return page_response(result, filters, schemas.User)


@router.get("/team", response_model=List[schemas.TeamMember])
async def list_team_endpoint(department: Optional[str] = None, db: Database = Depends(get_database)):
    return await user_repo.list_team_members(db, department=department)


@router.get("/{user_id}", response_model=schemas.User)
async def get_user_endpoint(user_id: str, db: Database = Depends(get_database)):
    user = await user_repo.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/{user_id}", response_model=schemas.User)
async def update_user_endpoint(user_id: str, payload: schemas.UserUpdate, db: Database = Depends(get_database)):
    user = await user_repo.update_user(db, user_id, payload.model_dump(exclude_unset=True))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.delete("/{user_id}", response_model=schemas.User)
async def deactivate_user_endpoint(user_id: str, db: Database = Depends(get_database)):
    user = await user_repo.deactivate_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}/settings", response_model=schemas.UserSettings)
async def get_settings_endpoint(user_id: str, db: Database = Depends(get_database)):
    settings = await user_repo.get_user_settings(db, user_id)
    if settings is None:
        raise HTTPException(status_code=404, detail="Settings not found")
    return settings


@router.patch("/{user_id}/settings", response_model=schemas.UserSettings)
async def update_settings_endpoint(
    user_id: str, payload: schemas.UserSettingsUpdate, db: Database = Depends(get_database)
):
    if await user_repo.get_user(db, user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    await user_repo.create_default_settings(db, user_id)
    return await user_repo.update_user_settings(db, user_id, payload.model_dump(exclude_unset=True))
