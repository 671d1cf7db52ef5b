from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from academy.common.deps import CurrentUser, Role, get_current_user, require_staff, require_student

from .engine import TierLockedError
from .schemas import CatalogProgressView, DraftUpdateRequest, Progress
from .service import progression_service

router = APIRouter(prefix="/progress", tags=["progress"], dependencies=[Depends(get_current_user)])


async def open_or_raise(coro):
    """Run a progression call, mapping domain errors onto HTTP statuses."""
    try:
        return await coro
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0] if exc.args else exc)) from exc
    except TierLockedError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except PermissionError:
        raise HTTPException(status_code=403, detail="Mission pack is locked. Enter its portal passcode first.") from None


@router.get("/", response_model=List[Progress], summary="List my progress records")
async def list_my_progress(current_user: CurrentUser = Depends(require_student())):
    return await progression_service.list_for_student(current_user.uid)


@router.get("/class/{class_id}", response_model=List[Progress], summary="Progress records of a class")
async def list_class_progress(class_id: str, current_user: CurrentUser = Depends(require_staff())):
    if current_user.role == Role.observer and current_user.class_id != class_id:
        raise HTTPException(status_code=403, detail="Observers can only view their own class")
    records = await progression_service.list_for_class(class_id)
    return [r for r in records if r.teacher_id == current_user.teacher_id]


@router.get("/teacher", response_model=List[Progress], summary="All progress records in my academy")
async def list_teacher_progress(
    limit: Optional[int] = Query(None, ge=1, le=500),
    current_user: CurrentUser = Depends(require_staff()),
):
    records = await progression_service.list_for_teacher(current_user.teacher_id)
    if current_user.role == Role.observer:
        records = [r for r in records if r.class_id == current_user.class_id]
    return records[:limit] if limit else records


@router.get("/{catalog_id}", response_model=CatalogProgressView, summary="Open a mission pack")
async def open_catalog(
    catalog_id: str,
    refresh: bool = Query(False, description="Reload the record from the store before rendering"),
    current_user: CurrentUser = Depends(require_student()),
):
    return await open_or_raise(progression_service.view(current_user.uid, catalog_id, refresh=refresh))


@router.put("/{catalog_id}/missions/{mission_id}/draft", response_model=Progress, summary="Autosave a draft")
async def save_draft(
    catalog_id: str,
    mission_id: str,
    payload: DraftUpdateRequest,
    current_user: CurrentUser = Depends(require_student()),
):
    return await open_or_raise(
        progression_service.save_draft(current_user.uid, catalog_id, mission_id, payload.code)
    )
