from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from academy.common.utils import normalise_code
from academy.db.store import document_store

from .schemas import ClassProfile, StudentProfile, StudentStatus, TeacherProfile

logger = logging.getLogger("roster.repository")

TEACHERS = "teachers"
CLASSES = "classes"
STUDENTS = "students"


class RosterRepository:
    """Teachers, classes and students.

    Note: teachers and students are keyed by the auth provider's uid, classes by a generated id."""

    # --- Teachers ---
    async def get_teacher(self, uid: str) -> Optional[TeacherProfile]:
        row = await document_store.get(TEACHERS, uid, key="uid", op="getTeacher")
        return TeacherProfile.model_validate(row) if row else None

    async def get_teacher_by_code(self, code: str) -> Optional[TeacherProfile]:
        rows = await document_store.query(
            TEACHERS, {"academy_code": normalise_code(code)}, limit=1, op="getTeacherByCode"
        )
        return TeacherProfile.model_validate(rows[0]) if rows else None

    async def save_teacher(self, profile: TeacherProfile) -> TeacherProfile:
        await document_store.set(TEACHERS, profile.model_dump(mode="json"), key="uid", op="saveTeacher")
        return profile

    # --- Classes ---
    async def get_class(self, class_id: str) -> Optional[ClassProfile]:
        row = await document_store.get(CLASSES, class_id, op="getClass")
        return ClassProfile.model_validate(row) if row else None

    async def list_classes(self, teacher_id: str) -> List[ClassProfile]:
        rows = await document_store.query(CLASSES, {"teacher_id": teacher_id}, op="getClasses")
        return [ClassProfile.model_validate(r) for r in rows]

    async def get_class_by_code(self, code: str) -> Optional[ClassProfile]:
        rows = await document_store.query(CLASSES, {"code": normalise_code(code)}, limit=1, op="getClassByCode")
        return ClassProfile.model_validate(rows[0]) if rows else None

    async def get_class_by_ta_key(self, teacher_id: str, ta_key: str) -> Optional[ClassProfile]:
        rows = await document_store.query(
            CLASSES,
            {"teacher_id": teacher_id, "ta_key": normalise_code(ta_key)},
            limit=1,
            op="getClassByTAKey",
        )
        return ClassProfile.model_validate(rows[0]) if rows else None

    async def save_class(self, classroom: ClassProfile) -> ClassProfile:
        await document_store.set(CLASSES, classroom.model_dump(mode="json"), op="saveClass")
        return classroom

    async def delete_class(self, class_id: str) -> None:
        await document_store.delete(CLASSES, class_id, op="deleteClass")

    # --- Students ---
    async def get_student(self, uid: str) -> Optional[StudentProfile]:
        row = await document_store.get(STUDENTS, uid, key="uid", op="getStudentProfile")
        return StudentProfile.model_validate(row) if row else None

    async def save_student(self, profile: StudentProfile) -> StudentProfile:
        await document_store.set(STUDENTS, profile.model_dump(mode="json"), key="uid", op="saveStudentProfile")
        return profile

    async def merge_student(self, uid: str, fields: Dict[str, Any], *, op: str) -> None:
        await document_store.set(STUDENTS, {"uid": uid, **fields}, key="uid", op=op)

    async def list_students(self, teacher_id: str, status: Optional[StudentStatus] = None) -> List[StudentProfile]:
        filters: Dict[str, Any] = {"master_key": teacher_id}
        if status is not None:
            filters["status"] = status.value
        op = f"get{status.value.capitalize()}Students" if status else "getStudents"
        rows = await document_store.query(STUDENTS, filters, op=op)
        return [StudentProfile.model_validate(r) for r in rows]

    async def list_students_by_class(self, class_id: str) -> List[StudentProfile]:
        rows = await document_store.query(STUDENTS, {"class_id": class_id}, op="getStudentsByClass")
        return [StudentProfile.model_validate(r) for r in rows]

    async def update_student_status(self, uid: str, status: StudentStatus) -> None:
        await document_store.update(STUDENTS, uid, {"status": status.value}, key="uid", op="updateStudentStatus")

    async def add_unlocked_set(self, uid: str, catalog_id: str) -> List[str]:
        """Append ``catalog_id`` to the student's unlocked sets (union, never duplicated)."""
        current = await self.get_student(uid)
        unlocked = list(current.unlocked_sets) if current else []
        if catalog_id not in unlocked:
            unlocked.append(catalog_id)
        await document_store.update(STUDENTS, uid, {"unlocked_sets": unlocked}, key="uid", op="unlockMissionPack")
        return unlocked


roster_repository = RosterRepository()

__all__ = ["roster_repository", "RosterRepository"]
