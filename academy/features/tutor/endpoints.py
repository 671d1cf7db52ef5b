from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from academy.common.deps import CurrentUser, get_current_user, require_teacher

from .generator import GenerationError, generate_missions
from .schemas import GenerateMissionsRequest, GenerateMissionsResponse

router = APIRouter(prefix="/tutor", tags=["tutor"], dependencies=[Depends(get_current_user)])


@router.post("/missions/generate", response_model=GenerateMissionsResponse, summary="Draft missions with the AI tutor")
async def generate(payload: GenerateMissionsRequest, current_user: CurrentUser = Depends(require_teacher())):
    if not payload.topic.strip():
        raise HTTPException(status_code=400, detail="topic is required")
    try:
        missions = await generate_missions(payload.topic.strip(), payload.language, payload.count, payload.difficulty)
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=f"Mission generation failed: {exc}") from exc
    return GenerateMissionsResponse(missions=missions)
