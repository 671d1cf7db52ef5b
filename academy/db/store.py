"""Flat-document access over Supabase tables.

Every collection (teachers, classes, students, question_sets, progress) is a
table whose rows are flat documents keyed by a stable string id. Queries are
equality filters with an optional result limit; there are no joins.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

from academy.core.config import get_settings
from academy.db.supabase import get_supabase

logger = logging.getLogger("db.store")

_PERMISSION_TOKENS = ("42501", "permission denied", "row-level security", "insufficient_privilege")


class StoreError(RuntimeError):
    """A document-store call failed; ``operation`` names the caller's action."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation


class PermissionDeniedError(StoreError):
    pass


def _normalise_error_message(exc: Exception) -> str:
    parts: List[str] = []
    for attr in ("message", "detail", "details", "hint", "code"):
        value = getattr(exc, attr, None)
        if value:
            parts.append(str(value))
    if getattr(exc, "args", None):
        parts.extend(str(arg) for arg in exc.args if arg)
    text = " ".join(parts).strip()
    return (text or str(exc)).lower()


def _is_permission_denied(exc: Exception) -> bool:
    text = _normalise_error_message(exc)
    return any(token in text for token in _PERMISSION_TOKENS)


class DocumentStore:
    async def _exec(self, query: Any, op: str) -> Any:
        timeout = get_settings().store_query_timeout
        t0 = time.perf_counter()
        try:
            resp = await asyncio.wait_for(query.execute(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise StoreError(op, f"Store operation '{op}' timed out after {timeout}s") from exc
        except APIError as exc:
            logger.error("store error [%s]: %s", op, exc)
            if _is_permission_denied(exc):
                raise PermissionDeniedError(
                    op,
                    f"Permission Denied: check the row-level security policies for the '{op}' operation.",
                ) from exc
            raise StoreError(op, f"Store operation '{op}' failed: {exc}") from exc
        ms = int((time.perf_counter() - t0) * 1000)
        if ms > 50:
            logger.info("store_%s_ms=%d", op, ms)
        return resp

    async def get(self, collection: str, doc_id: str, *, key: str = "id", op: str | None = None) -> Optional[Dict[str, Any]]:
        rows = await self.query(collection, {key: doc_id}, limit=1, op=op or f"{collection}.get")
        return rows[0] if rows else None

    async def query(
        self,
        collection: str,
        filters: Dict[str, Any],
        *,
        limit: int | None = None,
        op: str | None = None,
    ) -> List[Dict[str, Any]]:
        client = await get_supabase()
        builder = client.table(collection).select("*")
        for field, value in filters.items():
            builder = builder.eq(field, value)
        if limit is not None:
            builder = builder.limit(limit)
        resp = await self._exec(builder, op or f"{collection}.query")
        return list(getattr(resp, "data", None) or [])

    async def set(self, collection: str, doc: Dict[str, Any], *, key: str = "id", op: str | None = None) -> Dict[str, Any]:
        """Upsert ``doc``. Columns missing from ``doc`` keep their stored value (merge write)."""
        client = await get_supabase()
        resp = await self._exec(
            client.table(collection).upsert(doc, on_conflict=key),
            op or f"{collection}.set",
        )
        data = getattr(resp, "data", None) or []
        return data[0] if data else doc

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        *,
        key: str = "id",
        op: str | None = None,
    ) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        resp = await self._exec(
            client.table(collection).update(fields).eq(key, doc_id),
            op or f"{collection}.update",
        )
        data = getattr(resp, "data", None) or []
        return data[0] if data else None

    async def delete(self, collection: str, doc_id: str, *, key: str = "id", op: str | None = None) -> None:
        client = await get_supabase()
        await self._exec(client.table(collection).delete().eq(key, doc_id), op or f"{collection}.delete")


document_store = DocumentStore()

__all__ = ["DocumentStore", "document_store", "StoreError", "PermissionDeniedError"]
