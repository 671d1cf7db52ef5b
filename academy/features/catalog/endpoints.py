from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from academy.common.deps import CurrentUser, get_current_user, require_staff, require_student, require_teacher
from academy.features.roster.service import roster_service

from .schemas import (
    CatalogListResponse,
    CatalogSaveRequest,
    CatalogView,
    LibraryResponse,
    ManualMissionRequest,
    Mission,
    MissionCatalog,
)
from .service import catalog_service, manual_mission

router = APIRouter(prefix="/catalogs", tags=["catalogs"], dependencies=[Depends(get_current_user)])


def _public_view(catalog: MissionCatalog) -> CatalogView:
    return CatalogView.model_validate(catalog.model_dump(exclude={"passcode"}))


@router.get("/", response_model=CatalogListResponse, summary="Mission packs of my academy")
async def list_catalogs(current_user: CurrentUser = Depends(require_staff())):
    return CatalogListResponse(items=await catalog_service.list_for_teacher(current_user.teacher_id))


@router.post("/", response_model=MissionCatalog, summary="Create or update a mission pack")
async def save_catalog(payload: CatalogSaveRequest, current_user: CurrentUser = Depends(require_teacher())):
    try:
        return await catalog_service.save_catalog(current_user.uid, current_user.name, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PermissionError:
        raise HTTPException(status_code=403, detail="catalog_not_owned") from None


@router.get("/library", response_model=LibraryResponse, summary="Public mission pack library")
async def public_library(current_user: CurrentUser = Depends(require_teacher())):
    items = await catalog_service.list_public()
    return LibraryResponse(items=[_public_view(c) for c in items])


@router.get("/unlocked", response_model=List[CatalogView], summary="Mission packs I have unlocked")
async def unlocked_catalogs(current_user: CurrentUser = Depends(require_student())):
    student = await roster_service.get_student(current_user.uid)
    owned = await catalog_service.list_for_teacher(student.master_key)
    return [_public_view(c) for c in owned if c.id in student.unlocked_sets]


@router.post("/missions/template", response_model=Mission, summary="Blank mission for a tier")
async def mission_template(payload: ManualMissionRequest, current_user: CurrentUser = Depends(require_teacher())):
    return manual_mission(payload.tier, payload.language)


@router.post("/{catalog_id}/clone", response_model=MissionCatalog, summary="Copy a public pack into my academy")
async def clone_catalog(catalog_id: str, current_user: CurrentUser = Depends(require_teacher())):
    try:
        return await catalog_service.clone_catalog(catalog_id, current_user.uid, current_user.name)
    except LookupError:
        raise HTTPException(status_code=404, detail="catalog_not_found") from None
    except PermissionError:
        raise HTTPException(status_code=403, detail="catalog_not_public") from None


@router.delete("/{catalog_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a mission pack")
async def delete_catalog(catalog_id: str, current_user: CurrentUser = Depends(require_teacher())):
    try:
        await catalog_service.delete_catalog(catalog_id, current_user.uid)
    except LookupError:
        raise HTTPException(status_code=404, detail="catalog_not_found") from None
    except PermissionError:
        raise HTTPException(status_code=403, detail="catalog_not_owned") from None
