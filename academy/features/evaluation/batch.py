from __future__ import annotations

import logging
from typing import AsyncIterator, List

from academy.features.catalog.schemas import CatalogView
from academy.features.progression.actor import ProgressActor
from academy.features.progression.engine import is_tier_unlocked, staged_missions

from .orchestrator import EvaluationOrchestrator, evaluation_orchestrator
from .schemas import (
    BatchEvent,
    BatchReport,
    BatchStatus,
    EvaluationOutcome,
    ResultEvent,
    SelectEvent,
    SyncEvent,
)

logger = logging.getLogger("evaluation.batch")

EMPTY_MESSAGE = "No pending drafts detected in the staging buffer."


class BatchSyncDriver:
    """Evaluates every staged draft of a pack in order, one at a time.

    The run halts at the first mission that does not pass so the student can
    read its feedback; missions after it are left untouched. A staged mission
    whose tier is still locked also halts the run; completing earlier missions
    in the same run can open it.
    """

    def __init__(self, orchestrator: EvaluationOrchestrator | None = None) -> None:
        self.orchestrator = orchestrator or evaluation_orchestrator

    async def run(
        self,
        *,
        student_uid: str,
        student_name: str,
        catalog: CatalogView,
        actor: ProgressActor,
    ) -> AsyncIterator[SyncEvent]:
        staged = staged_missions(catalog, actor.snapshot)
        if not staged:
            yield BatchEvent(report=BatchReport(status=BatchStatus.empty, message=EMPTY_MESSAGE))
            return

        outcomes: List[EvaluationOutcome] = []
        halted = False
        message = ""
        for index, mission in enumerate(staged):
            if not is_tier_unlocked(catalog, actor.snapshot, mission.difficulty):
                halted = True
                message = f"{mission.difficulty.value} missions are still locked."
                logger.info("batch sync halted at locked mission=%s", mission.id)
                break
            yield SelectEvent(mission_id=mission.id, index=index, total=len(staged))
            code = actor.snapshot.draft_codes.get(mission.id, "")
            outcome: EvaluationOutcome | None = None
            async for event in self.orchestrator.run(
                student_uid=student_uid,
                student_name=student_name,
                catalog=catalog,
                mission=mission,
                code=code,
                actor=actor,
            ):
                if isinstance(event, ResultEvent):
                    outcome = event.outcome
                yield event
            if outcome is None:
                break
            outcomes.append(outcome)
            if not outcome.succeeded:
                halted = True
                logger.info("batch sync halted mission=%s status=%s", mission.id, outcome.status.value)
                break

        remaining = [m.id for m in staged[len(outcomes):]]
        status = BatchStatus.partial if halted or remaining else BatchStatus.complete
        yield BatchEvent(report=BatchReport(status=status, outcomes=outcomes, remaining=remaining, message=message))

    async def sync(self, **kwargs) -> BatchReport:
        report: BatchReport | None = None
        async for event in self.run(**kwargs):
            if isinstance(event, BatchEvent):
                report = event.report
        if report is None:
            raise RuntimeError("batch sync ended without a report")
        return report


batch_sync_driver = BatchSyncDriver()

__all__ = ["BatchSyncDriver", "batch_sync_driver", "EMPTY_MESSAGE"]
