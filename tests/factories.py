# Builders shared by the test modules.

from __future__ import annotations

from academy.features.catalog.models import Tier
from academy.features.catalog.schemas import Mission, MissionCatalog
from academy.features.progression.schemas import Progress


def make_mission(mission_id: str, tier: Tier, points: int | None = None, starter: str = "# start") -> Mission:
    defaults = {Tier.easy: 100, Tier.medium: 250, Tier.hard: 500, Tier.challenging: 1000}
    return Mission(
        id=mission_id,
        title=f"Mission {mission_id}",
        description=f"Solve {mission_id}",
        starter_code=starter,
        solution_hint="think",
        difficulty=tier,
        points=defaults[tier] if points is None else points,
    )


def make_catalog(missions, **overrides) -> MissionCatalog:
    data = dict(
        id="set_1",
        teacher_id="teacher-1",
        author_name="Ada",
        title="Loops",
        language="Python",
        passcode="LOOPS",
        questions=list(missions),
    )
    data.update(overrides)
    return MissionCatalog(**data)


def make_progress(catalog: MissionCatalog, **overrides) -> Progress:
    data = dict(
        id=f"p_student-1_{catalog.id}",
        student_uid="student-1",
        student_name="Sam",
        teacher_id=catalog.teacher_id,
        class_id="class-1",
        question_set_id=catalog.id,
        draft_codes={m.id: m.starter_code for m in catalog.questions},
        language=catalog.language.value,
    )
    data.update(overrides)
    return Progress(**data)


class MemoryProgressStore:
    """ProgressStore double that records every write."""

    def __init__(self, initial: Progress | None = None):
        self.records = {}
        self.saves = []
        if initial is not None:
            self.records[initial.id] = initial

    async def get(self, record_id):
        return self.records.get(record_id)

    async def save(self, progress):
        self.records[progress.id] = progress
        self.saves.append(progress)
        return progress
