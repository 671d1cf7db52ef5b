from __future__ import annotations

import logging
from typing import List

from academy.common.deps import AuthIdentity
from academy.common.sessions import issue_observer_token
from academy.common.utils import generate_id, normalise_code, now_ms, random_digits
from academy.features.catalog.models import ProgrammingLanguage
from academy.features.catalog.service import catalog_service
from academy.features.progression.engine import XP_PER_LEVEL, level_for_xp

from .repository import roster_repository
from .schemas import (
    ClassProfile,
    LanguageLevel,
    ObserverSession,
    StudentProfile,
    StudentRegisterRequest,
    StudentStatus,
    TeacherProfile,
    TeacherRegisterRequest,
    TrophyRoom,
    UnlockPackResponse,
)

logger = logging.getLogger("roster.service")


def _academy_code(name: str) -> str:
    first = (name.strip().split(" ")[0] or "ACADEMY").upper()
    return f"{first}-{random_digits(100, 999)}"


def _class_code(name: str) -> str:
    return f"{name.strip()[:3].upper()}-{random_digits(100, 999)}"


def _ta_key() -> str:
    return f"W-KEY-{random_digits(1000, 9998)}"


class RosterService:
    # --- Teachers ---
    async def register_teacher(self, identity: AuthIdentity, req: TeacherRegisterRequest) -> TeacherProfile:
        existing = await roster_repository.get_teacher(identity.uid)
        if existing is not None:
            return existing
        profile = TeacherProfile(
            uid=identity.uid,
            name=req.name.strip(),
            email=identity.email.strip(),
            school_name=req.school_name.strip(),
            academy_code=_academy_code(req.name),
        )
        logger.info("teacher registered uid=%s academy_code=%s", profile.uid, profile.academy_code)
        return await roster_repository.save_teacher(profile)

    # --- Classes ---
    async def create_class(self, teacher_id: str, name: str) -> ClassProfile:
        if not name.strip():
            raise ValueError("Class name is required.")
        classroom = ClassProfile(
            id=generate_id("class"),
            teacher_id=teacher_id,
            name=name.strip(),
            code=_class_code(name),
            ta_key=_ta_key(),
            created_at=now_ms(),
        )
        return await roster_repository.save_class(classroom)

    async def list_classes(self, teacher_id: str) -> List[ClassProfile]:
        return await roster_repository.list_classes(teacher_id)

    async def _owned_class(self, teacher_id: str, class_id: str) -> ClassProfile:
        classroom = await roster_repository.get_class(class_id)
        if classroom is None or classroom.teacher_id != teacher_id:
            raise LookupError("class_not_found")
        return classroom

    async def delete_class(self, teacher_id: str, class_id: str) -> None:
        await self._owned_class(teacher_id, class_id)
        await roster_repository.delete_class(class_id)

    async def regenerate_ta_key(self, teacher_id: str, class_id: str) -> ClassProfile:
        classroom = await self._owned_class(teacher_id, class_id)
        updated = classroom.model_copy(update={"ta_key": _ta_key()})
        return await roster_repository.save_class(updated)

    # --- Students ---
    async def register_student(self, identity: AuthIdentity, req: StudentRegisterRequest) -> StudentProfile:
        teacher = await roster_repository.get_teacher_by_code(req.master_key)
        if teacher is None:
            raise ValueError("Invalid Master Key. Please check with your teacher.")
        target_class = await roster_repository.get_class_by_code(req.class_code)
        if target_class is None or target_class.teacher_id != teacher.uid:
            raise ValueError("Class Code not found in this Academy.")

        student = StudentProfile(
            uid=identity.uid,
            name=req.name.strip(),
            email=identity.email.strip(),
            status=StudentStatus.pending,
            class_id=target_class.id,
            master_key=teacher.uid,
        )
        logger.info("student registered uid=%s class=%s teacher=%s", student.uid, target_class.id, teacher.uid)
        return await roster_repository.save_student(student)

    async def get_student(self, uid: str) -> StudentProfile:
        student = await roster_repository.get_student(uid)
        if student is None:
            raise LookupError("Student profile records not found.")
        return student

    async def list_pending(self, teacher_id: str) -> List[StudentProfile]:
        return await roster_repository.list_students(teacher_id, StudentStatus.pending)

    async def list_approved(self, teacher_id: str) -> List[StudentProfile]:
        return await roster_repository.list_students(teacher_id, StudentStatus.approved)

    async def list_class_students(self, class_id: str) -> List[StudentProfile]:
        return await roster_repository.list_students_by_class(class_id)

    async def set_status(self, teacher_id: str, student_uid: str, status: StudentStatus) -> StudentProfile:
        student = await self.get_student(student_uid)
        if student.master_key != teacher_id:
            raise LookupError("Student profile records not found.")
        await roster_repository.update_student_status(student_uid, status)
        logger.info("student status uid=%s status=%s", student_uid, status.value)
        return student.model_copy(update={"status": status})

    async def unlock_pack(self, student_uid: str, passcode: str) -> UnlockPackResponse:
        student = await self.get_student(student_uid)
        catalog = await catalog_service.find_by_portal(student.master_key, passcode)
        if catalog is None:
            raise ValueError("Invalid Portal Passcode.")
        if catalog.id in student.unlocked_sets:
            raise ValueError("Already synchronized.")
        await roster_repository.add_unlocked_set(student_uid, catalog.id)
        return UnlockPackResponse(catalog_id=catalog.id, message=f"SUCCESS: {catalog.title} Unlocked")

    async def leaderboard(self, teacher_id: str, limit: int = 10) -> List[StudentProfile]:
        approved = await self.list_approved(teacher_id)
        return sorted(approved, key=lambda s: s.global_xp or 0, reverse=True)[:limit]

    def trophy_room(self, student: StudentProfile) -> TrophyRoom:
        languages = []
        for language in ProgrammingLanguage:
            xp = int(student.language_mastery.get(language.value, 0) or 0)
            languages.append(
                LanguageLevel(
                    language=language.value,
                    xp=xp,
                    level=level_for_xp(xp),
                    progress_to_next=round((xp % XP_PER_LEVEL) / XP_PER_LEVEL * 100, 2),
                )
            )
        return TrophyRoom(
            uid=student.uid,
            name=student.name,
            global_xp=student.global_xp,
            level=level_for_xp(student.global_xp),
            languages=languages,
        )

    # --- Observers ---
    async def observer_login(self, academy_code: str, ta_key: str) -> ObserverSession:
        teacher = await roster_repository.get_teacher_by_code(academy_code)
        if teacher is None:
            raise ValueError("Invalid Academy Code.")
        classroom = await roster_repository.get_class_by_ta_key(teacher.uid, normalise_code(ta_key))
        if classroom is None:
            raise ValueError("Invalid TA Key for this Academy.")
        token = issue_observer_token(teacher.uid, classroom.id, classroom.name)
        logger.info("observer session issued class=%s teacher=%s", classroom.id, teacher.uid)
        return ObserverSession(token=token, teacher=teacher, classroom=classroom)


roster_service = RosterService()

__all__ = ["roster_service", "RosterService"]
