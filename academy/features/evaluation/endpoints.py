from __future__ import annotations

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from academy.common.deps import CurrentUser, get_current_user, require_student
from academy.db.store import StoreError
from academy.features.progression.engine import TierLockedError, ensure_unlocked
from academy.features.progression.service import progression_service

from .batch import batch_sync_driver
from .orchestrator import evaluation_orchestrator
from .schemas import ErrorEvent, EvaluateRequest

logger = logging.getLogger("evaluation.endpoints")

router = APIRouter(prefix="/progress", tags=["evaluation"], dependencies=[Depends(get_current_user)])

NDJSON = "application/x-ndjson"


async def _ndjson(events: AsyncIterator[BaseModel]) -> AsyncIterator[str]:
    try:
        async for event in events:
            yield event.model_dump_json() + "\n"
    except StoreError as exc:
        # headers are already sent; report in-band
        logger.error("store failure during evaluation stream [%s]: %s", exc.operation, exc)
        yield ErrorEvent(detail=str(exc)).model_dump_json() + "\n"


async def _open(current_user: CurrentUser, catalog_id: str):
    try:
        return await progression_service.open_catalog(current_user.uid, catalog_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0] if exc.args else exc)) from exc
    except PermissionError:
        raise HTTPException(status_code=403, detail="Mission pack is locked. Enter its portal passcode first.") from None


@router.post("/{catalog_id}/missions/{mission_id}/evaluate", summary="Stream tutor feedback for a submission")
async def evaluate_mission(
    catalog_id: str,
    mission_id: str,
    payload: EvaluateRequest,
    current_user: CurrentUser = Depends(require_student()),
):
    student, catalog, actor = await _open(current_user, catalog_id)
    mission = catalog.mission(mission_id)
    if mission is None:
        raise HTTPException(status_code=404, detail="mission_not_found")
    try:
        ensure_unlocked(catalog, actor.snapshot, mission)
    except TierLockedError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    code = payload.code if payload.code is not None else actor.snapshot.draft_codes.get(mission.id, "")
    events = evaluation_orchestrator.run(
        student_uid=student.uid,
        student_name=student.name,
        catalog=catalog,
        mission=mission,
        code=code,
        actor=actor,
    )
    return StreamingResponse(_ndjson(events), media_type=NDJSON)


@router.post("/{catalog_id}/sync", summary="Evaluate every staged draft in order")
async def sync_staged(catalog_id: str, current_user: CurrentUser = Depends(require_student())):
    student, catalog, actor = await _open(current_user, catalog_id)
    events = batch_sync_driver.run(
        student_uid=student.uid,
        student_name=student.name,
        catalog=catalog,
        actor=actor,
    )
    return StreamingResponse(_ndjson(events), media_type=NDJSON)
