from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from academy.common.deps import (
    AuthIdentity,
    CurrentUser,
    Role,
    get_auth_identity,
    get_current_user,
    landing_view,
    require_staff,
    require_student,
    require_teacher,
)

from .repository import roster_repository
from .schemas import (
    ClassCreateRequest,
    ClassProfile,
    ObserverLoginRequest,
    ObserverSession,
    StudentProfile,
    StudentRegisterRequest,
    StudentStatus,
    TeacherProfile,
    TeacherRegisterRequest,
    TrophyRoom,
    UnlockPackRequest,
    UnlockPackResponse,
    WhoAmI,
)
from .service import roster_service

auth_router = APIRouter(prefix="/auth", tags=["auth"])

router = APIRouter(prefix="/roster", tags=["roster"], dependencies=[Depends(get_current_user)])


# -----------------------------
# SIGN-UP / SIGN-IN
# -----------------------------
@auth_router.post("/teachers/register", response_model=TeacherProfile, summary="Create my teacher profile")
async def register_teacher(payload: TeacherRegisterRequest, identity: AuthIdentity = Depends(get_auth_identity)):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="name is required")
    return await roster_service.register_teacher(identity, payload)


@auth_router.post("/students/register", response_model=StudentProfile, summary="Enrol with a master key and class code")
async def register_student(payload: StudentRegisterRequest, identity: AuthIdentity = Depends(get_auth_identity)):
    try:
        return await roster_service.register_student(identity, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@auth_router.post("/observers/login", response_model=ObserverSession, summary="Sign in as a class observer")
async def observer_login(payload: ObserverLoginRequest):
    try:
        return await roster_service.observer_login(payload.academy_code, payload.ta_key)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


@auth_router.get("/me", response_model=WhoAmI, summary="Who am I and where do I land")
async def who_am_i(current_user: CurrentUser = Depends(get_current_user)):
    return WhoAmI(
        uid=current_user.uid,
        email=current_user.email,
        name=current_user.name,
        role=current_user.role.value,
        view=landing_view(current_user.role),
    )


# -----------------------------
# ACADEMY / CLASSES
# -----------------------------
@router.get("/teacher", response_model=TeacherProfile, summary="Academy owner profile")
async def get_teacher(current_user: CurrentUser = Depends(require_staff())):
    teacher = await roster_repository.get_teacher(current_user.teacher_id)
    if teacher is None:
        raise HTTPException(status_code=404, detail="teacher_not_found")
    return teacher


@router.get("/classes", response_model=List[ClassProfile], summary="List classes")
async def list_classes(current_user: CurrentUser = Depends(require_staff())):
    classes = await roster_service.list_classes(current_user.teacher_id)
    if current_user.role == Role.observer:
        return [c.model_copy(update={"ta_key": None}) for c in classes if c.id == current_user.class_id]
    return classes


@router.post("/classes", response_model=ClassProfile, status_code=status.HTTP_201_CREATED, summary="Create a class")
async def create_class(payload: ClassCreateRequest, current_user: CurrentUser = Depends(require_teacher())):
    try:
        return await roster_service.create_class(current_user.uid, payload.name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/classes/{class_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a class")
async def delete_class(class_id: str, current_user: CurrentUser = Depends(require_teacher())):
    try:
        await roster_service.delete_class(current_user.uid, class_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="class_not_found") from None


@router.post("/classes/{class_id}/ta-key", response_model=ClassProfile, summary="Issue a new observer key")
async def regenerate_ta_key(class_id: str, current_user: CurrentUser = Depends(require_teacher())):
    try:
        return await roster_service.regenerate_ta_key(current_user.uid, class_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="class_not_found") from None


@router.get("/classes/{class_id}/students", response_model=List[StudentProfile], summary="Students of a class")
async def class_students(class_id: str, current_user: CurrentUser = Depends(require_staff())):
    if current_user.role == Role.observer and current_user.class_id != class_id:
        raise HTTPException(status_code=403, detail="Observers can only view their own class")
    students = await roster_service.list_class_students(class_id)
    return [s for s in students if s.master_key == current_user.teacher_id]


# -----------------------------
# STUDENTS
# -----------------------------
@router.get("/students", response_model=List[StudentProfile], summary="Students by enrolment status")
async def list_students(
    status_filter: StudentStatus = Query(StudentStatus.approved, alias="status"),
    current_user: CurrentUser = Depends(require_teacher()),
):
    if status_filter == StudentStatus.pending:
        return await roster_service.list_pending(current_user.uid)
    if status_filter == StudentStatus.approved:
        return await roster_service.list_approved(current_user.uid)
    return await roster_repository.list_students(current_user.uid, status_filter)


async def _set_status(teacher_id: str, uid: str, new_status: StudentStatus) -> StudentProfile:
    try:
        return await roster_service.set_status(teacher_id, uid, new_status)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/students/{uid}/approve", response_model=StudentProfile, summary="Approve an enrolment")
async def approve_student(uid: str, current_user: CurrentUser = Depends(require_teacher())):
    return await _set_status(current_user.uid, uid, StudentStatus.approved)


@router.post("/students/{uid}/deny", response_model=StudentProfile, summary="Deny an enrolment")
async def deny_student(uid: str, current_user: CurrentUser = Depends(require_teacher())):
    return await _set_status(current_user.uid, uid, StudentStatus.denied)


@router.post("/unlock", response_model=UnlockPackResponse, summary="Unlock a mission pack by passcode")
async def unlock_pack(payload: UnlockPackRequest, current_user: CurrentUser = Depends(require_student())):
    try:
        return await roster_service.unlock_pack(current_user.uid, payload.passcode)
    except ValueError as exc:
        detail = str(exc)
        code = status.HTTP_409_CONFLICT if detail == "Already synchronized." else status.HTTP_404_NOT_FOUND
        raise HTTPException(status_code=code, detail=detail) from exc


@router.get("/leaderboard", response_model=List[StudentProfile], summary="Top explorers of my academy")
async def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    if current_user.role == Role.student_pending:
        raise HTTPException(status_code=403, detail="Enrollment pending teacher approval")
    return await roster_service.leaderboard(current_user.teacher_id, limit)


@router.get("/me/trophies", response_model=TrophyRoom, summary="My XP levels")
async def trophy_room(current_user: CurrentUser = Depends(require_student())):
    try:
        student = await roster_service.get_student(current_user.uid)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return roster_service.trophy_room(student)
