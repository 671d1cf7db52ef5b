from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .models import (
    DEFAULT_UNLOCK_EASY_TO_MEDIUM,
    DEFAULT_UNLOCK_HARD_TO_CHALLENGING,
    DEFAULT_UNLOCK_MEDIUM_TO_HARD,
    ProgrammingLanguage,
    Tier,
)


class Mission(BaseModel):
    id: str
    title: str
    description: str = ""
    starter_code: str = ""
    solution_hint: str = ""
    difficulty: Tier = Tier.easy
    points: int = 0


class CatalogView(BaseModel):
    """A mission pack as shown to students, observers and the public library."""

    id: str
    teacher_id: str
    author_name: str = ""
    title: str
    description: str = ""
    language: ProgrammingLanguage = ProgrammingLanguage.python
    questions: List[Mission] = Field(default_factory=list)
    is_public: bool = False
    created_at: int = 0
    unlock_easy_to_medium: int = DEFAULT_UNLOCK_EASY_TO_MEDIUM
    unlock_medium_to_hard: int = DEFAULT_UNLOCK_MEDIUM_TO_HARD
    unlock_hard_to_challenging: int = DEFAULT_UNLOCK_HARD_TO_CHALLENGING

    def mission(self, mission_id: str) -> Optional[Mission]:
        for mission in self.questions:
            if mission.id == mission_id:
                return mission
        return None


class MissionCatalog(CatalogView):
    passcode: str = ""


class CatalogSaveRequest(BaseModel):
    id: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    topic: Optional[str] = None
    language: ProgrammingLanguage = ProgrammingLanguage.python
    passcode: str = ""
    questions: List[Mission] = Field(default_factory=list)
    is_public: bool = False
    unlock_easy_to_medium: int = DEFAULT_UNLOCK_EASY_TO_MEDIUM
    unlock_medium_to_hard: int = DEFAULT_UNLOCK_MEDIUM_TO_HARD
    unlock_hard_to_challenging: int = DEFAULT_UNLOCK_HARD_TO_CHALLENGING

    @field_validator("unlock_easy_to_medium", "unlock_medium_to_hard", "unlock_hard_to_challenging", mode="before")
    @classmethod
    def _coerce_threshold(cls, value):
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return 0


class ManualMissionRequest(BaseModel):
    tier: Tier = Tier.easy
    language: ProgrammingLanguage = ProgrammingLanguage.python


class CatalogListResponse(BaseModel):
    items: List[MissionCatalog] = Field(default_factory=list)


class LibraryResponse(BaseModel):
    items: List[CatalogView] = Field(default_factory=list)
