from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from academy.common.utils import now_ms
from academy.features.catalog.schemas import CatalogView, MissionCatalog
from academy.features.catalog.service import catalog_service
from academy.features.roster.schemas import StudentProfile
from academy.features.roster.service import roster_service

from . import engine
from .actor import ProgressActor, ProgressActorRegistry, actor_registry
from .repository import progress_repository
from .schemas import CatalogProgressView, MissionState, Progress, progress_id

logger = logging.getLogger("progression.service")


def build_view(catalog: MissionCatalog, progress: Progress) -> CatalogProgressView:
    unlocked = engine.unlock_state(catalog, progress)
    done = set(progress.completed_questions)
    missions = [
        MissionState(
            mission=m,
            unlocked=unlocked[m.difficulty],
            completed=m.id in done,
            staged=engine.is_staged(progress, m),
            best_score=int(progress.scores.get(m.id, 0) or 0),
            draft=progress.draft_codes.get(m.id),
        )
        for m in catalog.questions
    ]
    return CatalogProgressView(
        catalog=CatalogView.model_validate(catalog.model_dump(exclude={"passcode"})),
        progress=progress,
        unlocked_tiers={tier.value: flag for tier, flag in unlocked.items()},
        missions=missions,
        staged_count=sum(1 for m in missions if m.staged),
        total_score=engine.total_score(progress),
        completion_percentage=engine.completion_percentage(catalog, progress),
    )


class ProgressionService:
    def __init__(self, registry: ProgressActorRegistry | None = None) -> None:
        self.registry = registry or actor_registry

    async def _accessible_catalog(self, student: StudentProfile, catalog_id: str) -> MissionCatalog:
        catalog = await catalog_service.get_catalog(catalog_id)
        if catalog.id not in student.unlocked_sets:
            raise PermissionError("catalog_locked")
        return catalog

    async def open_catalog(self, student_uid: str, catalog_id: str) -> Tuple[StudentProfile, MissionCatalog, ProgressActor]:
        """Resolve the student's record for ``catalog_id``, creating it on first entry.

        A new record starts with every draft seeded from the mission's starter code.
        """
        student = await roster_service.get_student(student_uid)
        catalog = await self._accessible_catalog(student, catalog_id)

        record_id = progress_id(student.uid, catalog.id)
        actor = self.registry.get(record_id)
        if actor is not None and actor.is_open:
            return student, catalog, self.registry.actor_for(actor.snapshot)

        progress = await progress_repository.get(record_id)
        if progress is None:
            progress = Progress(
                id=record_id,
                student_uid=student.uid,
                student_name=student.name,
                teacher_id=catalog.teacher_id,
                class_id=student.class_id,
                question_set_id=catalog.id,
                draft_codes={m.id: m.starter_code for m in catalog.questions},
                last_active=now_ms(),
                language=catalog.language.value,
            )
            await progress_repository.save(progress)
            logger.info("progress created id=%s", record_id)
        return student, catalog, self.registry.actor_for(progress)

    async def view(self, student_uid: str, catalog_id: str, *, refresh: bool = False) -> CatalogProgressView:
        _, catalog, actor = await self.open_catalog(student_uid, catalog_id)
        progress = await actor.refresh() if refresh else actor.snapshot
        return build_view(catalog, progress)

    async def save_draft(self, student_uid: str, catalog_id: str, mission_id: str, code: str) -> Progress:
        _, catalog, actor = await self.open_catalog(student_uid, catalog_id)
        mission = catalog.mission(mission_id)
        if mission is None:
            raise LookupError("mission_not_found")
        engine.ensure_unlocked(catalog, actor.snapshot, mission)
        return await actor.update_draft(mission_id, code)

    async def list_for_student(self, student_uid: str) -> List[Progress]:
        return await progress_repository.list_for_student(student_uid)

    async def list_for_teacher(self, teacher_id: str) -> List[Progress]:
        return await progress_repository.list_for_teacher(teacher_id)

    async def list_for_class(self, class_id: str) -> List[Progress]:
        return await progress_repository.list_for_class(class_id)

    async def get_record(self, record_id: str) -> Optional[Progress]:
        return await progress_repository.get(record_id)


progression_service = ProgressionService()

__all__ = ["progression_service", "ProgressionService", "build_view"]
