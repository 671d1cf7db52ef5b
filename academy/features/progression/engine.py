from __future__ import annotations

"""
Mission progression rules.

Unlock gates (only the immediately preceding tier counts):
	- Easy: always open
	- Medium: completed Easy missions >= unlock_easy_to_medium
	- Hard: completed Medium missions >= unlock_medium_to_hard
	- Challenging: completed Hard missions >= unlock_hard_to_challenging

Scoring is idempotent: the stored score of a mission is the best award seen,
and completion is a one-way flag. Every function here is pure; callers own
persistence.
"""

from typing import Dict, Iterable, List

from academy.features.catalog.models import TIERS, Tier, previous_tier
from academy.features.catalog.schemas import CatalogView, Mission

from .schemas import FeedbackEntry, ProfileStats, Progress

FEEDBACK_HISTORY_LIMIT = 15
XP_PER_LEVEL = 500


def _threshold(catalog: CatalogView, tier: Tier) -> int:
    if tier == Tier.medium:
        return catalog.unlock_easy_to_medium
    if tier == Tier.hard:
        return catalog.unlock_medium_to_hard
    if tier == Tier.challenging:
        return catalog.unlock_hard_to_challenging
    return 0


def completed_in_tier(catalog: CatalogView, progress: Progress, tier: Tier) -> int:
    done = set(progress.completed_questions)
    return sum(1 for m in catalog.questions if m.difficulty == tier and m.id in done)


def is_tier_unlocked(catalog: CatalogView, progress: Progress, tier: Tier) -> bool:
    prior = previous_tier(tier)
    if prior is None:
        return True
    return completed_in_tier(catalog, progress, prior) >= _threshold(catalog, tier)


def unlock_state(catalog: CatalogView, progress: Progress) -> Dict[Tier, bool]:
    return {tier: is_tier_unlocked(catalog, progress, tier) for tier in TIERS}


class TierLockedError(PermissionError):
    def __init__(self, mission_id: str, tier: Tier) -> None:
        super().__init__(f"{tier.value} missions are locked. Complete more missions in the previous tier first.")
        self.mission_id = mission_id
        self.tier = tier


def ensure_unlocked(catalog: CatalogView, progress: Progress, mission: Mission) -> None:
    """Raise :class:`TierLockedError` unless ``mission``'s tier is open for ``progress``."""
    if not is_tier_unlocked(catalog, progress, mission.difficulty):
        raise TierLockedError(mission.id, mission.difficulty)


def commit_verdict(
    progress: Progress,
    mission: Mission,
    success: bool,
    feedback: str,
    code: str,
    now: int,
) -> Progress:
    """Fold one evaluation verdict into ``progress`` and return the new record.

    The awarded score is the mission's point value on success, else 0; the
    model's self-reported score never reaches the store.
    """
    award = mission.points if success else 0

    scores = dict(progress.scores)
    scores[mission.id] = max(scores.get(mission.id, 0), award)

    completed = list(progress.completed_questions)
    if success and mission.id not in completed:
        completed.append(mission.id)

    drafts = dict(progress.draft_codes)
    drafts[mission.id] = code

    entry = FeedbackEntry(
        timestamp=now,
        question_id=mission.id,
        success=success,
        score=award,
        feedback=feedback,
    )
    history = [entry, *progress.feedback_history][:FEEDBACK_HISTORY_LIMIT]

    return progress.model_copy(
        update={
            "scores": scores,
            "completed_questions": completed,
            "draft_codes": drafts,
            "feedback_history": history,
            "last_active": now,
        }
    )


def is_staged(progress: Progress, mission: Mission) -> bool:
    """A draft is staged when it was edited away from the starter code and not yet passed."""
    draft = progress.draft_codes.get(mission.id)
    if draft is None:
        return False
    if mission.id in progress.completed_questions:
        return False
    return draft.strip() != (mission.starter_code or "").strip()


def staged_missions(catalog: CatalogView, progress: Progress) -> List[Mission]:
    return [m for m in catalog.questions if is_staged(progress, m)]


def staged_count(catalog: CatalogView, progress: Progress) -> int:
    return len(staged_missions(catalog, progress))


def total_score(progress: Progress) -> int:
    return sum(int(v or 0) for v in progress.scores.values())


def completion_percentage(catalog: CatalogView, progress: Progress) -> int:
    if not catalog.questions:
        return 0
    done = set(progress.completed_questions)
    finished = sum(1 for m in catalog.questions if m.id in done)
    return round(finished / len(catalog.questions) * 100)


def level_for_xp(xp: int) -> int:
    return max(0, int(xp or 0)) // XP_PER_LEVEL + 1


def recompute_profile_stats(records: Iterable[Progress]) -> ProfileStats:
    """Rebuild a student's aggregate from every one of their progress records.

    ``completed_sets`` lists every pack the student has a record for.
    """
    global_xp = 0
    mastery: Dict[str, int] = {}
    touched: List[str] = []
    for record in records:
        points = total_score(record)
        global_xp += points
        if record.language:
            mastery[record.language] = mastery.get(record.language, 0) + points
        if record.question_set_id not in touched:
            touched.append(record.question_set_id)
    return ProfileStats(global_xp=global_xp, language_mastery=mastery, completed_sets=sorted(touched))
