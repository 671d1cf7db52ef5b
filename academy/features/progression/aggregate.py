from __future__ import annotations

import logging

from academy.features.roster.repository import roster_repository

from .engine import recompute_profile_stats
from .repository import progress_repository
from .schemas import ProfileStats

logger = logging.getLogger("progression.aggregate")


async def recompute_and_store(student_uid: str, student_name: str) -> ProfileStats:
    """Rebuild the student's XP aggregate from their progress records and merge it into the profile.

    The stored aggregate is derived data; it is only ever overwritten, never read back as input.
    """
    records = await progress_repository.list_for_student(student_uid)
    stats = recompute_profile_stats(records)
    await roster_repository.merge_student(
        student_uid,
        {
            "name": student_name,
            "global_xp": stats.global_xp,
            "language_mastery": stats.language_mastery,
            "completed_sets": stats.completed_sets,
        },
        op="updateGlobalStudentStats",
    )
    logger.info("profile stats uid=%s global_xp=%d packs=%d", student_uid, stats.global_xp, len(stats.completed_sets))
    return stats
