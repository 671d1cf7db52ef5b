import pytest

from academy.features.catalog.models import Tier
from academy.features.progression import engine
from academy.features.progression.schemas import FeedbackEntry

from factories import make_catalog, make_mission, make_progress


def _catalog(**overrides):
    missions = [
        make_mission("e1", Tier.easy),
        make_mission("e2", Tier.easy),
        make_mission("e3", Tier.easy),
        make_mission("m1", Tier.medium),
        make_mission("m2", Tier.medium),
        make_mission("m3", Tier.medium),
        make_mission("h1", Tier.hard),
        make_mission("h2", Tier.hard),
        make_mission("c1", Tier.challenging),
    ]
    return make_catalog(missions, **overrides)


def test_easy_always_unlocked_and_rest_locked_on_fresh_progress():
    catalog = _catalog()
    progress = make_progress(catalog)
    state = engine.unlock_state(catalog, progress)
    assert state == {Tier.easy: True, Tier.medium: False, Tier.hard: False, Tier.challenging: False}


def test_medium_unlocks_at_threshold():
    catalog = _catalog()
    progress = make_progress(catalog, completed_questions=["e1", "e2"])
    assert not engine.is_tier_unlocked(catalog, progress, Tier.medium)
    progress = make_progress(catalog, completed_questions=["e1", "e2", "e3"])
    assert engine.is_tier_unlocked(catalog, progress, Tier.medium)


def test_only_previous_tier_counts():
    catalog = _catalog()
    # all Easy and Hard done but no Medium: Hard stays locked, Challenging opens
    progress = make_progress(catalog, completed_questions=["e1", "e2", "e3", "h1", "h2"])
    assert not engine.is_tier_unlocked(catalog, progress, Tier.hard)
    assert engine.is_tier_unlocked(catalog, progress, Tier.challenging)


def test_completed_ids_from_other_packs_are_ignored():
    catalog = _catalog()
    progress = make_progress(catalog, completed_questions=["x1", "x2", "x3"])
    assert not engine.is_tier_unlocked(catalog, progress, Tier.medium)


def test_tier_without_missions_never_meets_positive_threshold():
    catalog = make_catalog([make_mission("m1", Tier.medium)])
    progress = make_progress(catalog)
    assert not engine.is_tier_unlocked(catalog, progress, Tier.medium)


def test_zero_threshold_is_always_satisfied():
    catalog = make_catalog([make_mission("m1", Tier.medium)], unlock_easy_to_medium=0)
    assert engine.is_tier_unlocked(catalog, make_progress(catalog), Tier.medium)


def test_unlock_is_monotonic_as_completions_grow():
    catalog = _catalog()
    order = ["e1", "e2", "e3", "m1", "m2", "m3", "h1", "h2", "c1"]
    previous = engine.unlock_state(catalog, make_progress(catalog))
    for i in range(1, len(order) + 1):
        current = engine.unlock_state(catalog, make_progress(catalog, completed_questions=order[:i]))
        for tier in previous:
            assert current[tier] or not previous[tier]
        previous = current


def test_commit_success_awards_mission_points_and_completes():
    catalog = _catalog()
    mission = catalog.mission("m1")
    progress = make_progress(catalog)
    updated = engine.commit_verdict(progress, mission, True, "Logic verified.", "print(1)", now=1000)
    assert updated.scores["m1"] == 250
    assert "m1" in updated.completed_questions
    assert updated.draft_codes["m1"] == "print(1)"
    assert updated.last_active == 1000
    assert updated.feedback_history[0] == FeedbackEntry(
        timestamp=1000, question_id="m1", success=True, score=250, feedback="Logic verified."
    )
    # input untouched
    assert progress.scores == {}
    assert progress.completed_questions == []


def test_failed_resubmission_keeps_best_score_and_completion():
    catalog = _catalog()
    mission = catalog.mission("e1")
    passed = engine.commit_verdict(make_progress(catalog), mission, True, "ok", "good", now=1)
    failed = engine.commit_verdict(passed, mission, False, "regressed", "bad", now=2)
    assert failed.scores["e1"] == 100
    assert "e1" in failed.completed_questions
    assert failed.draft_codes["e1"] == "bad"
    assert [e.success for e in failed.feedback_history] == [False, True]


def test_failing_twice_only_grows_the_log():
    catalog = _catalog()
    mission = catalog.mission("e1")
    once = engine.commit_verdict(make_progress(catalog), mission, False, "no", "x", now=1)
    twice = engine.commit_verdict(once, mission, False, "no", "x", now=2)
    assert once.scores == twice.scores == {"e1": 0}
    assert once.completed_questions == twice.completed_questions == []
    assert len(twice.feedback_history) == len(once.feedback_history) + 1


def test_feedback_history_keeps_newest_fifteen():
    catalog = _catalog()
    mission = catalog.mission("e1")
    progress = make_progress(catalog)
    for n in range(20):
        progress = engine.commit_verdict(progress, mission, False, f"attempt {n}", "x", now=n)
    assert len(progress.feedback_history) == engine.FEEDBACK_HISTORY_LIMIT
    assert progress.feedback_history[0].feedback == "attempt 19"
    assert progress.feedback_history[-1].feedback == "attempt 5"


def test_staged_detection_ignores_whitespace_and_completed():
    catalog = make_catalog(
        [
            make_mission("e1", Tier.easy, starter="def f():\n    pass"),
            make_mission("e2", Tier.easy, starter="def g():\n    pass"),
            make_mission("e3", Tier.easy, starter="def h():\n    pass"),
        ]
    )
    progress = make_progress(
        catalog,
        draft_codes={
            "e1": "  def f():\n    pass\n\n",
            "e2": "def g():\n    return 1",
            "e3": "def h():\n    return 2",
        },
        completed_questions=["e3"],
    )
    assert [m.id for m in engine.staged_missions(catalog, progress)] == ["e2"]
    assert engine.staged_count(catalog, progress) == 1


def test_mission_without_draft_is_not_staged():
    catalog = make_catalog([make_mission("e1", Tier.easy)])
    progress = make_progress(catalog, draft_codes={})
    assert not engine.is_staged(progress, catalog.mission("e1"))


def test_total_score_and_completion_percentage():
    catalog = _catalog()
    progress = make_progress(catalog, scores={"e1": 100, "m1": 250, "e2": 0}, completed_questions=["e1", "m1", "e2"])
    assert engine.total_score(progress) == 350
    assert engine.completion_percentage(catalog, progress) == 33
    assert engine.completion_percentage(make_catalog([]), progress) == 0


def test_level_for_xp():
    assert engine.level_for_xp(0) == 1
    assert engine.level_for_xp(499) == 1
    assert engine.level_for_xp(500) == 2
    assert engine.level_for_xp(1250) == 3


def test_recompute_profile_stats_sums_per_language_and_lists_touched_packs():
    py = make_catalog([make_mission("e1", Tier.easy)], id="set_py", language="Python")
    js = make_catalog([make_mission("e1", Tier.easy)], id="set_js", language="Javascript")
    py2 = make_catalog([make_mission("e1", Tier.easy)], id="set_py2", language="Python")
    records = [
        make_progress(py, id="p1", scores={"e1": 100, "e2": 250}),
        make_progress(js, id="p2", scores={"e1": 500}),
        make_progress(py2, id="p3", scores={}),
    ]
    stats = engine.recompute_profile_stats(records)
    assert stats.global_xp == 850
    assert stats.language_mastery == {"Python": 350, "Javascript": 500}
    assert stats.completed_sets == ["set_js", "set_py", "set_py2"]
    # order independent
    assert engine.recompute_profile_stats(list(reversed(records))) == stats


def test_two_easy_passes_keep_medium_locked_and_count_toward_global_xp():
    catalog = _catalog(unlock_easy_to_medium=3)
    progress = make_progress(catalog)
    for index, mission_id in enumerate(["e1", "e2"]):
        progress = engine.commit_verdict(progress, catalog.mission(mission_id), True, "ok", "code", now=index)

    assert engine.completed_in_tier(catalog, progress, Tier.easy) == 2
    assert not engine.is_tier_unlocked(catalog, progress, Tier.medium)
    assert engine.recompute_profile_stats([progress]).global_xp == 200


def test_failed_medium_after_unlock_leaves_easy_count_and_records_zero():
    catalog = _catalog(unlock_easy_to_medium=3)
    progress = make_progress(catalog)
    for index, mission_id in enumerate(["e1", "e2", "e3"]):
        progress = engine.commit_verdict(progress, catalog.mission(mission_id), True, "ok", "code", now=index)
    assert engine.is_tier_unlocked(catalog, progress, Tier.medium)

    progress = engine.commit_verdict(progress, catalog.mission("m1"), False, "not yet", "wrong()", now=10)

    assert engine.completed_in_tier(catalog, progress, Tier.easy) == 3
    assert progress.scores["m1"] == 0
    assert "m1" not in progress.completed_questions
    assert engine.is_tier_unlocked(catalog, progress, Tier.medium)
    assert engine.recompute_profile_stats([progress]).global_xp == 300


def test_ensure_unlocked_names_the_locked_tier():
    catalog = _catalog()
    progress = make_progress(catalog)
    engine.ensure_unlocked(catalog, progress, catalog.mission("e1"))
    with pytest.raises(engine.TierLockedError) as info:
        engine.ensure_unlocked(catalog, progress, catalog.mission("m1"))
    assert info.value.tier == Tier.medium
    assert "Medium" in str(info.value)
