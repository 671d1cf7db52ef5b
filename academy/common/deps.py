"""Shared FastAPI dependencies for authentication, authorization, and context."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from academy.common.sessions import decode_observer_token
from academy.core.config import get_settings
from academy.db.supabase import get_supabase
from academy.features.roster.repository import roster_repository
from academy.features.roster.schemas import StudentStatus

logger = logging.getLogger("auth.deps")
security = HTTPBearer(auto_error=True)


class Role(str, Enum):
    teacher = "teacher"
    student_pending = "student_pending"
    student_approved = "student_approved"
    observer = "observer"


LANDING_VIEWS: Dict[Role, str] = {
    Role.teacher: "teacher_dashboard",
    Role.student_pending: "waiting_room",
    Role.student_approved: "student_portal",
    Role.observer: "warden_dashboard",
}


def landing_view(role: Role) -> str:
    try:
        return LANDING_VIEWS[role]
    except KeyError as exc:
        raise AssertionError(f"unhandled role {role!r}") from exc


def role_for_student(student_status: StudentStatus) -> Role:
    if student_status == StudentStatus.approved:
        return Role.student_approved
    return Role.student_pending


class AuthIdentity(BaseModel):
    """Account as known to the auth provider, before any profile lookup."""
    uid: str
    email: str


class CurrentUser(BaseModel):
    """Resolved caller identity shared across endpoints.

    ``teacher_id`` is the owning teacher for every role (a teacher owns itself)."""
    uid: str
    email: Optional[str] = None
    name: str = ""
    role: Role
    teacher_id: str
    class_id: Optional[str] = None


async def get_auth_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthIdentity:
    """Validate a bearer token with Supabase Auth and return the account identity."""
    client = await get_supabase()
    try:
        t0 = time.perf_counter()
        auth_user = await asyncio.wait_for(
            client.auth.get_user(credentials.credentials),
            timeout=get_settings().store_query_timeout,
        )
        ms = int((time.perf_counter() - t0) * 1000)
        if ms > 50:
            logger.info("auth.get_user_ms=%d", ms)
    except Exception as exc:  # noqa: BLE001 - any provider failure is an auth failure
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials") from exc

    if not auth_user or not auth_user.user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")
    sup_user = auth_user.user
    email = sup_user.email or (sup_user.user_metadata or {}).get("email")
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User email missing in token")
    return AuthIdentity(uid=str(sup_user.id), email=email)


async def _resolve_profile(identity: AuthIdentity) -> CurrentUser:
    teacher = await roster_repository.get_teacher(identity.uid)
    if teacher is not None:
        return CurrentUser(
            uid=teacher.uid,
            email=identity.email,
            name=teacher.name,
            role=Role.teacher,
            teacher_id=teacher.uid,
        )
    student = await roster_repository.get_student(identity.uid)
    if student is not None:
        return CurrentUser(
            uid=student.uid,
            email=identity.email,
            name=student.name,
            role=role_for_student(student.status),
            teacher_id=student.master_key,
            class_id=student.class_id,
        )
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account found, but profile data is missing.")


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """Resolve the caller: observer session token first, then Supabase Auth + profile lookup."""
    claims = decode_observer_token(credentials.credentials)
    if claims is not None:
        current = CurrentUser(
            uid=str(claims["sub"]),
            name=str(claims.get("name") or ""),
            role=Role.observer,
            teacher_id=str(claims["teacher_id"]),
            class_id=str(claims["class_id"]),
        )
    else:
        identity = await get_auth_identity(credentials)
        current = await _resolve_profile(identity)

    request_id = request.headers.get("X-Request-Id") or request.headers.get("X-Request-ID")
    logger.info(
        "auth_resolved uid=%s role=%s request_id=%s path=%s",
        current.uid,
        current.role.value,
        request_id,
        request.url.path,
    )
    return current


def require_role(*roles: Role) -> Callable:
    """Factory returning a dependency enforcing that the caller has one of ``roles``."""
    allowed = set(roles)

    async def _checker(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not allowed or current.role in allowed:
            return current
        if current.role == Role.student_pending:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Enrollment pending teacher approval")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")

    return _checker


def require_teacher() -> Callable:
    return require_role(Role.teacher)


def require_student() -> Callable:
    return require_role(Role.student_approved)


def require_staff() -> Callable:
    return require_role(Role.teacher, Role.observer)
