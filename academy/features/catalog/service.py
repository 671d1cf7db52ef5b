from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from academy.common.utils import generate_id, normalise_code, now_ms

from .models import POINTS_BY_TIER, TIER_ORDER, ProgrammingLanguage, Tier
from .repository import catalog_repository
from .schemas import CatalogSaveRequest, Mission, MissionCatalog

logger = logging.getLogger("catalog.service")


def sort_missions(missions: Iterable[Mission]) -> List[Mission]:
    """Tier order first, then ascending point value."""
    return sorted(missions, key=lambda m: (TIER_ORDER.get(m.difficulty, 0), m.points))


def manual_mission(tier: Tier, language: ProgrammingLanguage) -> Mission:
    starter = "# Start coding here..." if language == ProgrammingLanguage.python else "// Start coding here..."
    return Mission(
        id=generate_id("q_manual"),
        title=f"New {tier.value} Mission",
        description="Describe the challenge objectives here...",
        starter_code=starter,
        solution_hint="Provide a helpful nudge for students...",
        difficulty=tier,
        points=POINTS_BY_TIER[tier],
    )


class CatalogService:
    async def save_catalog(self, teacher_id: str, author_name: str, req: CatalogSaveRequest) -> MissionCatalog:
        if not req.title.strip() or not req.passcode.strip() or not req.questions:
            raise ValueError("Please fill in Title, Passcode, and add at least one Mission.")

        existing: Optional[MissionCatalog] = None
        if req.id:
            existing = await catalog_repository.get(req.id)
            if existing and existing.teacher_id != teacher_id:
                raise PermissionError("catalog_not_owned")

        description = req.description
        if description is None:
            description = existing.description if existing else f"Exploring {req.topic or 'Custom Missions'} in {req.language.value}"

        catalog = MissionCatalog(
            id=req.id or generate_id("set"),
            teacher_id=teacher_id,
            author_name=author_name,
            title=req.title.strip(),
            description=description,
            # the language of an existing pack is fixed once created
            language=existing.language if existing else req.language,
            passcode=normalise_code(req.passcode),
            questions=sort_missions(req.questions),
            is_public=req.is_public,
            created_at=existing.created_at if existing and existing.created_at else now_ms(),
            unlock_easy_to_medium=req.unlock_easy_to_medium,
            unlock_medium_to_hard=req.unlock_medium_to_hard,
            unlock_hard_to_challenging=req.unlock_hard_to_challenging,
        )
        return await catalog_repository.save(catalog)

    async def get_catalog(self, catalog_id: str) -> MissionCatalog:
        catalog = await catalog_repository.get(catalog_id)
        if catalog is None:
            raise LookupError("catalog_not_found")
        return catalog

    async def list_for_teacher(self, teacher_id: str) -> List[MissionCatalog]:
        return await catalog_repository.list_for_teacher(teacher_id)

    async def list_public(self) -> List[MissionCatalog]:
        return await catalog_repository.list_public()

    async def find_by_portal(self, teacher_id: str, passcode: str) -> Optional[MissionCatalog]:
        if not passcode.strip():
            return None
        return await catalog_repository.get_by_portal(teacher_id, passcode)

    async def clone_catalog(self, catalog_id: str, teacher_id: str, author_name: str) -> MissionCatalog:
        original = await self.get_catalog(catalog_id)
        if not original.is_public and original.teacher_id != teacher_id:
            raise PermissionError("catalog_not_public")
        clone = original.model_copy(
            update={
                "id": generate_id("set"),
                "teacher_id": teacher_id,
                "author_name": author_name or original.author_name,
                "is_public": False,
                "created_at": now_ms(),
            }
        )
        logger.info("catalog cloned source=%s clone=%s teacher=%s", catalog_id, clone.id, teacher_id)
        return await catalog_repository.save(clone)

    async def delete_catalog(self, catalog_id: str, teacher_id: str) -> None:
        catalog = await self.get_catalog(catalog_id)
        if catalog.teacher_id != teacher_id:
            raise PermissionError("catalog_not_owned")
        await catalog_repository.delete(catalog_id)


catalog_service = CatalogService()

__all__ = ["catalog_service", "CatalogService", "sort_missions", "manual_mission"]
