import asyncio

import pytest

from academy.features.catalog.models import Tier
from academy.features.progression.actor import ActorClosedError, ProgressActor, ProgressActorRegistry

from factories import MemoryProgressStore, make_catalog, make_mission, make_progress

pytestmark = pytest.mark.anyio("asyncio")

DEBOUNCE = 0.05


def _setup():
    catalog = make_catalog([make_mission("e1", Tier.easy), make_mission("e2", Tier.easy)])
    progress = make_progress(catalog)
    return progress, MemoryProgressStore(progress)


async def test_rapid_edits_coalesce_into_one_write():
    progress, store = _setup()
    actor = ProgressActor(progress, store=store, debounce_seconds=DEBOUNCE)

    for n in range(5):
        await actor.update_draft("e1", f"draft {n}")
    assert actor.snapshot.draft_codes["e1"] == "draft 4"
    assert store.saves == []

    await asyncio.sleep(DEBOUNCE * 4)
    assert len(store.saves) == 1
    assert store.saves[0].draft_codes["e1"] == "draft 4"
    assert not actor.has_pending_save
    await actor.close()


async def test_commit_writes_immediately_and_cancels_pending_save():
    progress, store = _setup()
    actor = ProgressActor(progress, store=store, debounce_seconds=DEBOUNCE)

    await actor.update_draft("e2", "work in progress")
    updated = await actor.commit(lambda p: p.model_copy(update={"completed_questions": ["e1"]}))
    assert len(store.saves) == 1
    assert updated.completed_questions == ["e1"]
    # the commit write already carried the pending draft
    assert store.saves[0].draft_codes["e2"] == "work in progress"

    await asyncio.sleep(DEBOUNCE * 4)
    assert len(store.saves) == 1
    await actor.close()


async def test_refresh_keeps_unsaved_drafts():
    progress, store = _setup()
    actor = ProgressActor(progress, store=store, debounce_seconds=10)

    await actor.update_draft("e1", "local edit")
    # another writer changed the stored record meanwhile
    store.records[progress.id] = progress.model_copy(update={"scores": {"e2": 100}, "completed_questions": ["e2"]})

    refreshed = await actor.refresh()
    assert refreshed.scores == {"e2": 100}
    assert refreshed.draft_codes["e1"] == "local edit"
    await actor.close()


async def test_flush_and_close_persist_pending_drafts():
    progress, store = _setup()
    actor = ProgressActor(progress, store=store, debounce_seconds=10)

    await actor.update_draft("e1", "first")
    await actor.flush()
    assert [s.draft_codes["e1"] for s in store.saves] == ["first"]

    await actor.update_draft("e1", "second")
    await actor.close()
    assert [s.draft_codes["e1"] for s in store.saves] == ["first", "second"]

    with pytest.raises(ActorClosedError):
        await actor.update_draft("e1", "third")


async def test_failed_commit_leaves_state_unchanged():
    progress, store = _setup()

    class FlakyStore(MemoryProgressStore):
        failures = 1

        async def save(self, progress):
            if self.failures:
                self.failures -= 1
                raise RuntimeError("store down")
            return await super().save(progress)

    flaky = FlakyStore(progress)
    actor = ProgressActor(progress, store=flaky, debounce_seconds=10)
    with pytest.raises(RuntimeError):
        await actor.commit(lambda p: p.model_copy(update={"completed_questions": ["e1"]}))
    assert actor.snapshot.completed_questions == []
    # the actor keeps serving after a failed command
    await actor.update_draft("e1", "still alive")
    assert actor.snapshot.draft_codes["e1"] == "still alive"
    await actor.close()
    assert flaky.saves[-1].draft_codes["e1"] == "still alive"


async def test_registry_reuses_actor_per_record():
    progress, store = _setup()
    registry = ProgressActorRegistry(store=store, debounce_seconds=10)

    first = registry.actor_for(progress)
    assert registry.actor_for(progress) is first
    assert registry.get(progress.id) is first

    await first.update_draft("e1", "pending")
    await registry.close_all()
    assert store.saves[-1].draft_codes["e1"] == "pending"
    assert registry.get(progress.id) is None


async def test_idle_actor_saves_drafts_then_leaves_the_registry():
    progress, store = _setup()
    registry = ProgressActorRegistry(store=store, debounce_seconds=DEBOUNCE, idle_seconds=0.1)

    actor = registry.actor_for(progress)
    await actor.update_draft("e1", "typed")
    await asyncio.sleep(0.4)

    assert store.saves[-1].draft_codes["e1"] == "typed"
    assert not actor.is_open
    assert registry.get(progress.id) is None
    with pytest.raises(ActorClosedError):
        await actor.update_draft("e1", "late")

    replacement = registry.actor_for(store.records[progress.id])
    assert replacement is not actor
    assert replacement.snapshot.draft_codes["e1"] == "typed"
    await registry.close_all()


async def test_untouched_actor_retires_without_writing():
    progress, store = _setup()
    stopped = []
    actor = ProgressActor(progress, store=store, debounce_seconds=DEBOUNCE, idle_seconds=0.05, on_idle=stopped.append)

    await asyncio.sleep(0.3)

    assert stopped == [actor]
    assert not actor.is_open
    assert store.saves == []


async def test_activity_keeps_actor_alive():
    progress, store = _setup()
    actor = ProgressActor(progress, store=store, debounce_seconds=10, idle_seconds=0.2)

    for _ in range(4):
        await asyncio.sleep(0.08)
        await actor.refresh()

    assert actor.is_open
    await actor.close()
