import pytest

from academy.features.catalog.models import Tier
from academy.features.evaluation.batch import EMPTY_MESSAGE, BatchSyncDriver
from academy.features.evaluation.orchestrator import EvaluationOrchestrator
from academy.features.evaluation.schemas import BatchEvent, BatchStatus, OutcomeStatus, ResultEvent, SelectEvent
from academy.features.progression.actor import ProgressActor

from factories import MemoryProgressStore, make_catalog, make_mission, make_progress

pytestmark = pytest.mark.anyio("asyncio")


class ScriptedTutor:
    """Answers each evaluation with the next scripted verdict; records the order of calls."""

    def __init__(self, verdicts):
        self.verdicts = list(verdicts)
        self.calls = 0

    async def stream(self, prompt, *, system=None):
        success = self.verdicts[self.calls]
        self.calls += 1
        flag = "true" if success else "false"
        yield "Reviewing. "
        yield f'[DATA]{{"success": {flag}, "score": 1, "feedback": "fb"}}[/DATA]'


async def _noop_recompute(uid, name):
    return None


def _staged_setup():
    catalog = make_catalog(
        [make_mission("e1", Tier.easy), make_mission("e2", Tier.easy), make_mission("e3", Tier.easy)]
    )
    progress = make_progress(catalog, draft_codes={"e1": "a()", "e2": "b()", "e3": "c()"})
    return catalog, progress


async def _collect(driver, catalog, actor):
    events = []
    async for event in driver.run(student_uid="student-1", student_name="Sam", catalog=catalog, actor=actor):
        events.append(event)
    return events


async def test_batch_halts_at_first_failure_and_leaves_rest_untouched():
    catalog, progress = _staged_setup()
    store = MemoryProgressStore(progress)
    actor = ProgressActor(progress, store=store, debounce_seconds=10)
    tutor = ScriptedTutor([True, False, True])
    driver = BatchSyncDriver(EvaluationOrchestrator(gateway=tutor, recompute=_noop_recompute))

    events = await _collect(driver, catalog, actor)
    await actor.close()

    assert [e.mission_id for e in events if isinstance(e, SelectEvent)] == ["e1", "e2"]
    assert tutor.calls == 2
    report = events[-1].report
    assert report.status == BatchStatus.partial
    assert [o.status for o in report.outcomes] == [OutcomeStatus.passed, OutcomeStatus.failed]
    assert report.remaining == ["e3"]

    saved = store.records[progress.id]
    assert saved.completed_questions == ["e1"]
    assert "e3" not in saved.scores
    assert saved.draft_codes["e3"] == "c()"


async def test_batch_runs_every_staged_mission_in_catalog_order():
    catalog, progress = _staged_setup()
    store = MemoryProgressStore(progress)
    actor = ProgressActor(progress, store=store, debounce_seconds=10)
    driver = BatchSyncDriver(EvaluationOrchestrator(gateway=ScriptedTutor([True, True, True]), recompute=_noop_recompute))

    events = await _collect(driver, catalog, actor)
    await actor.close()

    kinds = [type(e).__name__ for e in events if isinstance(e, (SelectEvent, ResultEvent))]
    # select always precedes its own result: no overlapping evaluations
    assert kinds == ["SelectEvent", "ResultEvent"] * 3
    report = events[-1].report
    assert report.status == BatchStatus.complete
    assert report.remaining == []
    assert store.records[progress.id].completed_questions == ["e1", "e2", "e3"]


async def test_batch_with_nothing_staged_reports_empty():
    catalog = make_catalog([make_mission("e1", Tier.easy)])
    progress = make_progress(catalog)
    actor = ProgressActor(progress, store=MemoryProgressStore(progress), debounce_seconds=10)
    tutor = ScriptedTutor([])
    driver = BatchSyncDriver(EvaluationOrchestrator(gateway=tutor, recompute=_noop_recompute))

    events = await _collect(driver, catalog, actor)
    await actor.close()

    assert len(events) == 1
    assert isinstance(events[0], BatchEvent)
    assert events[0].report.status == BatchStatus.empty
    assert events[0].report.message == EMPTY_MESSAGE
    assert tutor.calls == 0


async def test_malformed_verdict_halts_batch():
    catalog, progress = _staged_setup()

    class BrokenTutor:
        async def stream(self, prompt, *, system=None):
            yield "no verdict"

    actor = ProgressActor(progress, store=MemoryProgressStore(progress), debounce_seconds=10)
    driver = BatchSyncDriver(EvaluationOrchestrator(gateway=BrokenTutor(), recompute=_noop_recompute))

    report = await driver.sync(student_uid="student-1", student_name="Sam", catalog=catalog, actor=actor)
    await actor.close()

    assert report.status == BatchStatus.partial
    assert [o.status for o in report.outcomes] == [OutcomeStatus.malformed]
    assert report.remaining == ["e2", "e3"]


def _tiered_setup(**unlocks):
    catalog = make_catalog([make_mission("e1", Tier.easy), make_mission("m1", Tier.medium)], **unlocks)
    progress = make_progress(catalog, draft_codes={"e1": "a()", "m1": "b()"})
    return catalog, progress


async def test_batch_stops_at_a_locked_tier_without_evaluating_it():
    catalog, progress = _tiered_setup()
    store = MemoryProgressStore(progress)
    actor = ProgressActor(progress, store=store, debounce_seconds=10)
    tutor = ScriptedTutor([True, True])
    driver = BatchSyncDriver(EvaluationOrchestrator(gateway=tutor, recompute=_noop_recompute))

    events = await _collect(driver, catalog, actor)
    await actor.close()

    assert [e.mission_id for e in events if isinstance(e, SelectEvent)] == ["e1"]
    assert tutor.calls == 1
    report = events[-1].report
    assert report.status == BatchStatus.partial
    assert report.remaining == ["m1"]
    assert "Medium" in report.message
    saved = store.records[progress.id]
    assert "m1" not in saved.scores
    assert saved.draft_codes["m1"] == "b()"


async def test_tier_opened_earlier_in_the_run_is_evaluated():
    catalog, progress = _tiered_setup(unlock_easy_to_medium=1)
    actor = ProgressActor(progress, store=MemoryProgressStore(progress), debounce_seconds=10)
    tutor = ScriptedTutor([True, True])
    driver = BatchSyncDriver(EvaluationOrchestrator(gateway=tutor, recompute=_noop_recompute))

    report = await driver.sync(student_uid="student-1", student_name="Sam", catalog=catalog, actor=actor)
    await actor.close()

    assert report.status == BatchStatus.complete
    assert tutor.calls == 2


async def test_sync_without_a_report_raises():
    catalog, progress = _staged_setup()
    actor = ProgressActor(progress, store=MemoryProgressStore(progress), debounce_seconds=10)

    class SilentDriver(BatchSyncDriver):
        async def run(self, **kwargs):
            for _ in ():
                yield _

    with pytest.raises(RuntimeError, match="without a report"):
        await SilentDriver().sync(student_uid="student-1", student_name="Sam", catalog=catalog, actor=actor)
    await actor.close()
