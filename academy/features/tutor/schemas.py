from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from academy.features.catalog.models import ProgrammingLanguage, Tier
from academy.features.catalog.schemas import Mission


class GenerateMissionsRequest(BaseModel):
    topic: str
    language: ProgrammingLanguage = ProgrammingLanguage.python
    count: int = Field(3, ge=1, le=10)
    difficulty: Optional[Tier] = None


class GenerateMissionsResponse(BaseModel):
    missions: List[Mission] = Field(default_factory=list)
