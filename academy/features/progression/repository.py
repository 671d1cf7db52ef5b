from __future__ import annotations

import logging
from typing import List, Optional

from academy.db.store import document_store

from .schemas import Progress

logger = logging.getLogger("progression.repository")

COLLECTION = "progress"


def _latest_first(items: List[Progress]) -> List[Progress]:
    return sorted(items, key=lambda p: p.last_active or 0, reverse=True)


class ProgressRepository:
    async def get(self, record_id: str) -> Optional[Progress]:
        row = await document_store.get(COLLECTION, record_id, op="getProgress")
        return Progress.model_validate(row) if row else None

    async def save(self, progress: Progress) -> Progress:
        await document_store.set(COLLECTION, progress.model_dump(mode="json"), op="saveProgress")
        return progress

    async def list_for_student(self, student_uid: str, teacher_id: str | None = None) -> List[Progress]:
        filters = {"student_uid": student_uid}
        if teacher_id:
            filters["teacher_id"] = teacher_id
        rows = await document_store.query(COLLECTION, filters, op="getStudentProgress")
        return [Progress.model_validate(r) for r in rows]

    async def list_for_teacher(self, teacher_id: str) -> List[Progress]:
        rows = await document_store.query(COLLECTION, {"teacher_id": teacher_id}, op="getTeacherProgress")
        return _latest_first([Progress.model_validate(r) for r in rows])

    async def list_for_class(self, class_id: str) -> List[Progress]:
        rows = await document_store.query(COLLECTION, {"class_id": class_id}, op="getClassProgress")
        return _latest_first([Progress.model_validate(r) for r in rows])


progress_repository = ProgressRepository()

__all__ = ["progress_repository", "ProgressRepository"]
