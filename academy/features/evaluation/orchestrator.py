from __future__ import annotations

import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from academy.common.utils import now_ms
from academy.features.catalog.schemas import CatalogView, Mission
from academy.features.progression.actor import ProgressActor
from academy.features.progression.aggregate import recompute_and_store
from academy.features.progression.engine import commit_verdict, ensure_unlocked
from academy.features.tutor.bedrock_client import bedrock_gateway
from academy.features.tutor.prompts import render_evaluation_prompt

from .schemas import EvaluationEvent, EvaluationOutcome, FeedbackEvent, OutcomeStatus, ResultEvent
from .stream import MalformedVerdictError, VerdictStreamParser

logger = logging.getLogger("evaluation.orchestrator")

FALLBACK_MESSAGE = "Uplink Interrupted. Please check logic and retry."
MALFORMED_MESSAGE = "The tutor's verdict could not be read. Your progress was not changed; please retry."

Recompute = Callable[[str, str], Awaitable[object]]


class TutorStream(Protocol):
    def stream(self, prompt: str, *, system: Optional[str] = None) -> AsyncIterator[str]: ...


class EvaluationOrchestrator:
    """Runs one submission through the tutor and folds the verdict into progress."""

    def __init__(self, gateway: TutorStream | None = None, recompute: Recompute | None = None) -> None:
        self.gateway = gateway or bedrock_gateway
        self.recompute = recompute or recompute_and_store

    async def run(
        self,
        *,
        student_uid: str,
        student_name: str,
        catalog: CatalogView,
        mission: Mission,
        code: str,
        actor: ProgressActor,
    ) -> AsyncIterator[EvaluationEvent]:
        ensure_unlocked(catalog, actor.snapshot, mission)
        system, prompt = render_evaluation_prompt(catalog.language.value, mission.description, code)
        parser = VerdictStreamParser()
        visible = ""

        try:
            async for chunk in self.gateway.stream(prompt, system=system):
                text = parser.feed(chunk)
                if text != visible:
                    visible = text
                    yield FeedbackEvent(mission_id=mission.id, text=visible)
        except Exception as exc:  # noqa: BLE001 - any broken stream degrades to the fallback
            logger.warning("evaluation interrupted mission=%s student=%s: %s", mission.id, student_uid, exc)
            yield FeedbackEvent(mission_id=mission.id, text=FALLBACK_MESSAGE)
            yield ResultEvent(
                outcome=EvaluationOutcome(
                    mission_id=mission.id,
                    status=OutcomeStatus.interrupted,
                    visible_text=FALLBACK_MESSAGE,
                    error=str(exc),
                )
            )
            return

        try:
            verdict = parser.finish()
        except MalformedVerdictError as exc:
            logger.warning("malformed verdict mission=%s student=%s: %s", mission.id, student_uid, exc)
            yield ResultEvent(
                outcome=EvaluationOutcome(
                    mission_id=mission.id,
                    status=OutcomeStatus.malformed,
                    visible_text=visible,
                    error=MALFORMED_MESSAGE,
                )
            )
            return

        success = verdict.success
        feedback = verdict.feedback or visible
        awarded = mission.points if success else 0
        updated = await actor.commit(
            lambda progress: commit_verdict(progress, mission, success, feedback, code, now_ms())
        )
        if success:
            try:
                await self.recompute(student_uid, student_name)
            except Exception as e:  # noqa: BLE001 - aggregate is rebuilt on the next success
                logger.exception("profile recompute failed student=%s: %s", student_uid, e)

        logger.info(
            "evaluation mission=%s student=%s success=%s awarded=%d reported=%s",
            mission.id,
            student_uid,
            success,
            awarded,
            verdict.score,
        )
        yield ResultEvent(
            outcome=EvaluationOutcome(
                mission_id=mission.id,
                status=OutcomeStatus.passed if success else OutcomeStatus.failed,
                awarded_score=awarded,
                feedback=feedback,
                suggestions=verdict.suggestions,
                visible_text=visible,
                progress=updated,
            )
        )

    async def evaluate(self, **kwargs) -> EvaluationOutcome:
        """Drain :meth:`run` and return its terminal outcome."""
        outcome: EvaluationOutcome | None = None
        async for event in self.run(**kwargs):
            if isinstance(event, ResultEvent):
                outcome = event.outcome
        if outcome is None:
            raise RuntimeError("evaluation stream ended without a result")
        return outcome


evaluation_orchestrator = EvaluationOrchestrator()

__all__ = ["EvaluationOrchestrator", "evaluation_orchestrator", "FALLBACK_MESSAGE", "MALFORMED_MESSAGE"]
