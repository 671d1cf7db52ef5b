from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from academy.features.progression.schemas import Progress


class PackStat(BaseModel):
    id: str
    title: str
    completion_rate: int


class AcademyAnalytics(BaseModel):
    total_xp: int = 0
    average_xp: int = 0
    approved_students: int = 0
    packs: List[PackStat] = Field(default_factory=list)
    recent_activity: List[Progress] = Field(default_factory=list)
