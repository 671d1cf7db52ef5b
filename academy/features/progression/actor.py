from __future__ import annotations

"""
Per-record mutation queue for progress documents.

Each progress record gets one ProgressActor: a single asyncio task that owns
the in-memory copy and applies every change (draft edits, verdict commits,
refreshes) in arrival order. Draft edits are persisted after a quiet period
so a burst of keystrokes becomes one write; a commit writes immediately and
supersedes any pending draft save.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from academy.common.utils import now_ms
from academy.core.config import get_settings

from .repository import progress_repository
from .schemas import Progress

logger = logging.getLogger("progression.actor")

Mutator = Callable[[Progress], Progress]


class ProgressStore(Protocol):
    async def get(self, record_id: str) -> Optional[Progress]: ...

    async def save(self, progress: Progress) -> Progress: ...


class ActorClosedError(RuntimeError):
    pass


class ProgressActor:
    def __init__(
        self,
        progress: Progress,
        *,
        store: ProgressStore | None = None,
        debounce_seconds: float | None = None,
        idle_seconds: float | None = None,
        on_idle: Callable[["ProgressActor"], None] | None = None,
    ) -> None:
        self.record_id = progress.id
        self._progress = progress
        self._store = store or progress_repository
        self._debounce = (
            get_settings().autosave_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        # an actor with nothing to save stops after this long without commands
        self._idle = get_settings().actor_idle_seconds if idle_seconds is None else idle_seconds
        self._on_idle = on_idle
        # drafts applied in memory but not yet written
        self._unsaved: Dict[str, str] = {}
        self._save_due: float | None = None
        self._queue: asyncio.Queue[Tuple[str, Any, asyncio.Future]] = asyncio.Queue()
        self._closed = False
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self._run(), name=f"progress-actor:{self.record_id}")

    # --- public API (safe to call from any coroutine) ---
    @property
    def snapshot(self) -> Progress:
        return self._progress

    @property
    def is_open(self) -> bool:
        return not self._closed and not self._task.done()

    @property
    def has_pending_save(self) -> bool:
        return self._save_due is not None

    async def update_draft(self, mission_id: str, code: str) -> Progress:
        return await self._submit("draft", (mission_id, code))

    async def commit(self, mutator: Mutator) -> Progress:
        return await self._submit("commit", mutator)

    async def refresh(self) -> Progress:
        return await self._submit("refresh", None)

    async def flush(self) -> Progress:
        return await self._submit("flush", None)

    async def close(self) -> None:
        if self._closed:
            return
        try:
            await self._submit("close", None)
        finally:
            self._closed = True
            await self._task

    # --- internals ---
    async def _submit(self, kind: str, payload: Any) -> Any:
        if self._closed or self._task.done():
            raise ActorClosedError(f"progress actor {self.record_id} is closed")
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        await self._queue.put((kind, payload, fut))
        return await fut

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            timeout = self._idle if self._idle and self._idle > 0 else None
            if self._save_due is not None:
                timeout = max(0.0, self._save_due - loop.time())
            try:
                kind, payload, fut = await asyncio.wait_for(self._queue.get(), timeout)
            except asyncio.TimeoutError:
                if self._save_due is not None:
                    await self._debounced_save()
                elif self._queue.empty():
                    self._retire()
                    return
                continue
            except asyncio.CancelledError:
                logger.info("progress actor cancelled id=%s", self.record_id)
                raise

            try:
                result = await self._handle(kind, payload)
            except Exception as exc:  # noqa: BLE001 - handed back to the caller
                if not fut.done():
                    fut.set_exception(exc)
            else:
                if not fut.done():
                    fut.set_result(result)
            if kind == "close":
                return

    async def _handle(self, kind: str, payload: Any) -> Any:
        if kind == "draft":
            mission_id, code = payload
            drafts = dict(self._progress.draft_codes)
            drafts[mission_id] = code
            self._progress = self._progress.model_copy(update={"draft_codes": drafts, "last_active": now_ms()})
            self._unsaved[mission_id] = code
            self._save_due = asyncio.get_running_loop().time() + self._debounce
            return self._progress
        if kind == "commit":
            updated = payload(self._progress)
            await self._store.save(updated)
            self._progress = updated
            self._unsaved.clear()
            self._save_due = None
            return updated
        if kind == "refresh":
            fresh = await self._store.get(self.record_id)
            if fresh is not None:
                if self._unsaved:
                    drafts = dict(fresh.draft_codes)
                    drafts.update(self._unsaved)
                    fresh = fresh.model_copy(update={"draft_codes": drafts})
                self._progress = fresh
            return self._progress
        if kind in ("flush", "close"):
            if self._save_due is not None:
                await self._persist()
            return self._progress
        raise ValueError(f"unknown actor command {kind!r}")

    def _retire(self) -> None:
        self._closed = True
        logger.info("progress actor idle, stopping id=%s", self.record_id)
        if self._on_idle is not None:
            self._on_idle(self)

    async def _persist(self) -> None:
        await self._store.save(self._progress)
        logger.info("progress autosaved id=%s drafts=%d", self.record_id, len(self._unsaved))
        self._unsaved.clear()
        self._save_due = None

    async def _debounced_save(self) -> None:
        try:
            await self._persist()
        except Exception as e:  # noqa: BLE001
            logger.exception("progress autosave failed id=%s: %s, retrying in %.1fs", self.record_id, e, self._debounce)
            self._save_due = asyncio.get_running_loop().time() + self._debounce


class ProgressActorRegistry:
    """Hands out one actor per progress record id within this process.

    Idle actors stop themselves and are dropped here; the next open recreates
    one from the stored record.
    """

    def __init__(
        self,
        *,
        store: ProgressStore | None = None,
        debounce_seconds: float | None = None,
        idle_seconds: float | None = None,
    ) -> None:
        self._actors: Dict[str, ProgressActor] = {}
        self._store = store
        self._debounce = debounce_seconds
        self._idle = idle_seconds

    def actor_for(self, progress: Progress) -> ProgressActor:
        actor = self._actors.get(progress.id)
        # actors are bound to the loop that created them
        if actor is None or not actor.is_open or actor._loop is not asyncio.get_running_loop():
            actor = ProgressActor(
                progress,
                store=self._store,
                debounce_seconds=self._debounce,
                idle_seconds=self._idle,
                on_idle=self._evict,
            )
            self._actors[progress.id] = actor
        return actor

    def get(self, record_id: str) -> Optional[ProgressActor]:
        return self._actors.get(record_id)

    def _evict(self, actor: ProgressActor) -> None:
        if self._actors.get(actor.record_id) is actor:
            del self._actors[actor.record_id]

    async def close_all(self) -> None:
        actors = list(self._actors.values())
        self._actors.clear()
        current = asyncio.get_running_loop()
        for actor in actors:
            if actor._loop is not current:
                continue
            try:
                await actor.close()
            except Exception as e:  # noqa: BLE001
                logger.exception("closing progress actor %s failed: %s", actor.record_id, e)


actor_registry = ProgressActorRegistry()

__all__ = ["ProgressActor", "ProgressActorRegistry", "ActorClosedError", "actor_registry", "Mutator"]
