from __future__ import annotations

import logging
from typing import List, Optional

from academy.common import cache
from academy.common.utils import normalise_code
from academy.db.store import document_store

from .schemas import MissionCatalog

logger = logging.getLogger("catalog.repository")

COLLECTION = "question_sets"
_CACHE_PREFIX = "catalogs:"


def _newest_first(items: List[MissionCatalog]) -> List[MissionCatalog]:
    return sorted(items, key=lambda c: c.created_at or 0, reverse=True)


class CatalogRepository:
    async def get(self, catalog_id: str) -> Optional[MissionCatalog]:
        async def load() -> Optional[MissionCatalog]:
            row = await document_store.get(COLLECTION, catalog_id, op="getQuestionSet")
            return MissionCatalog.model_validate(row) if row else None

        return await cache.get_or_load(f"{_CACHE_PREFIX}id:{catalog_id}", load)

    async def list_for_teacher(self, teacher_id: str) -> List[MissionCatalog]:
        rows = await document_store.query(COLLECTION, {"teacher_id": teacher_id}, op="getQuestionSets")
        return _newest_first([MissionCatalog.model_validate(r) for r in rows])

    async def list_public(self) -> List[MissionCatalog]:
        async def load() -> List[MissionCatalog]:
            rows = await document_store.query(COLLECTION, {"is_public": True}, op="getPublicQuestionSets")
            return _newest_first([MissionCatalog.model_validate(r) for r in rows])

        return await cache.get_or_load(f"{_CACHE_PREFIX}public", load)

    async def get_by_portal(self, teacher_id: str, passcode: str) -> Optional[MissionCatalog]:
        rows = await document_store.query(
            COLLECTION,
            {"teacher_id": teacher_id, "passcode": normalise_code(passcode)},
            limit=1,
            op="getQuestionSetByPortal",
        )
        return MissionCatalog.model_validate(rows[0]) if rows else None

    async def save(self, catalog: MissionCatalog) -> MissionCatalog:
        await document_store.set(COLLECTION, catalog.model_dump(mode="json"), op="saveQuestionSet")
        cache.clear(_CACHE_PREFIX)
        logger.info("catalog saved id=%s missions=%d", catalog.id, len(catalog.questions))
        return catalog

    async def delete(self, catalog_id: str) -> None:
        await document_store.delete(COLLECTION, catalog_id, op="deleteQuestionSet")
        cache.clear(_CACHE_PREFIX)


catalog_repository = CatalogRepository()

__all__ = ["catalog_repository", "CatalogRepository"]
