from __future__ import annotations

from io import StringIO
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from academy.common.deps import CurrentUser, Role, get_current_user, require_staff, require_teacher

from .schemas import AcademyAnalytics
from .service import content_disposition, report_service

router = APIRouter(prefix="/reports", tags=["reports"], dependencies=[Depends(get_current_user)])


def _csv_response(filename: str, content: str) -> StreamingResponse:
    return StreamingResponse(
        StringIO(content),
        media_type="text/csv",
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.get("/students.csv", summary="Export the academy report")
async def export_students_csv(
    catalog_id: Optional[str] = Query(None),
    class_id: Optional[str] = Query(None),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: CurrentUser = Depends(require_teacher()),
):
    try:
        filename, content = await report_service.teacher_csv(
            current_user.uid,
            catalog_id=catalog_id,
            class_id=class_id,
            descending=order == "desc",
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _csv_response(filename, content)


@router.get("/class/{class_id}.csv", summary="Export a class report")
async def export_class_csv(
    class_id: str,
    catalog_id: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(require_staff()),
):
    if current_user.role == Role.observer and current_user.class_id != class_id:
        raise HTTPException(status_code=403, detail="Observers can only view their own class")
    try:
        filename, content = await report_service.observer_csv(current_user.teacher_id, class_id, catalog_id=catalog_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _csv_response(filename, content)


@router.get("/analytics", response_model=AcademyAnalytics, summary="Academy intelligence summary")
async def analytics(current_user: CurrentUser = Depends(require_teacher())):
    return await report_service.analytics(current_user.uid)
