from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class StudentStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"


# -------------------
# Stored documents
# -------------------
class TeacherProfile(BaseModel):
    uid: str
    name: str
    email: str
    school_name: str = ""
    academy_code: str


class ClassProfile(BaseModel):
    id: str
    teacher_id: str
    name: str
    code: str
    ta_key: Optional[str] = None
    created_at: int = 0


class StudentProfile(BaseModel):
    uid: str
    name: str
    email: str
    global_xp: int = 0
    language_mastery: Dict[str, int] = Field(default_factory=dict)
    completed_sets: List[str] = Field(default_factory=list)
    status: StudentStatus = StudentStatus.pending
    class_id: str
    master_key: str
    unlocked_sets: List[str] = Field(default_factory=list)


# -------------------
# Requests / responses
# -------------------
class TeacherRegisterRequest(BaseModel):
    name: str
    school_name: str = ""


class StudentRegisterRequest(BaseModel):
    name: str
    master_key: str
    class_code: str


class ClassCreateRequest(BaseModel):
    name: str


class UnlockPackRequest(BaseModel):
    passcode: str


class UnlockPackResponse(BaseModel):
    catalog_id: str
    message: str


class ObserverLoginRequest(BaseModel):
    academy_code: str
    ta_key: str


class ObserverSession(BaseModel):
    token: str
    teacher: TeacherProfile
    classroom: ClassProfile


class LanguageLevel(BaseModel):
    language: str
    xp: int
    level: int
    progress_to_next: float


class TrophyRoom(BaseModel):
    uid: str
    name: str
    global_xp: int
    level: int
    languages: List[LanguageLevel] = Field(default_factory=list)


class WhoAmI(BaseModel):
    uid: str
    email: Optional[str] = None
    name: str = ""
    role: str
    view: str
