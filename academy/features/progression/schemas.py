from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from academy.features.catalog.schemas import CatalogView, Mission


def progress_id(student_uid: str, catalog_id: str) -> str:
    return f"p_{student_uid}_{catalog_id}"


class FeedbackEntry(BaseModel):
    timestamp: int
    question_id: str
    success: bool
    score: int
    feedback: str = ""


class Progress(BaseModel):
    """One student's state within one mission pack."""

    id: str
    student_uid: str
    student_name: str = ""
    teacher_id: str
    class_id: str = ""
    question_set_id: str
    completed_questions: List[str] = Field(default_factory=list)
    scores: Dict[str, int] = Field(default_factory=dict)
    draft_codes: Dict[str, str] = Field(default_factory=dict)
    feedback_history: List[FeedbackEntry] = Field(default_factory=list)
    last_active: int = 0
    language: str = ""


class ProfileStats(BaseModel):
    global_xp: int = 0
    language_mastery: Dict[str, int] = Field(default_factory=dict)
    completed_sets: List[str] = Field(default_factory=list)


class MissionState(BaseModel):
    mission: Mission
    unlocked: bool
    completed: bool
    staged: bool
    best_score: int = 0
    draft: Optional[str] = None


class CatalogProgressView(BaseModel):
    catalog: CatalogView
    progress: Progress
    unlocked_tiers: Dict[str, bool]
    missions: List[MissionState]
    staged_count: int
    total_score: int
    completion_percentage: int


class DraftUpdateRequest(BaseModel):
    code: str
