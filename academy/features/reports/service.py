from __future__ import annotations

import csv
import logging
import re
from datetime import date
from io import StringIO
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

from academy.features.catalog.schemas import MissionCatalog
from academy.features.catalog.service import catalog_service
from academy.features.progression.engine import completion_percentage, total_score
from academy.features.progression.schemas import Progress
from academy.features.progression.service import progression_service
from academy.features.roster.schemas import ClassProfile, StudentProfile
from academy.features.roster.service import roster_service

from .schemas import AcademyAnalytics, PackStat

logger = logging.getLogger("reports.service")

RECENT_ACTIVITY_LIMIT = 5

Table = Tuple[List[str], List[List[object]]]


def render_csv(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def report_filename(title: Optional[str], today: date | None = None) -> str:
    today = today or date.today()
    return f"academy_report_{title or 'global'}_{today.isoformat()}.csv"


def observer_report_filename(class_name: str, title: Optional[str]) -> str:
    if title:
        slug = re.sub(r"\s+", "_", title)
        return f"warden_report_{class_name}_{slug}.csv"
    return f"warden_global_report_{class_name}.csv"


def content_disposition(filename: str) -> str:
    """Attachment header value safe for any title: an ASCII fallback plus the RFC 5987 UTF-8 form."""
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "_", filename)
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


def _find(records: List[Progress], student_uid: str, catalog_id: str) -> Optional[Progress]:
    for record in records:
        if record.student_uid == student_uid and record.question_set_id == catalog_id:
            return record
    return None


def teacher_report(
    students: List[StudentProfile],
    classes: List[ClassProfile],
    records: List[Progress],
    catalog: Optional[MissionCatalog] = None,
    *,
    class_id: Optional[str] = None,
    descending: bool = True,
) -> Table:
    """Approved-student report for the whole academy or a single pack.

    With a pack selected only students holding a record for it are listed and
    rows are ordered by their points in that pack; otherwise by global XP.
    """
    class_names: Dict[str, str] = {c.id: c.name for c in classes}
    selected = [s for s in students if class_id is None or s.class_id == class_id]
    if catalog is not None:
        selected = [s for s in selected if _find(records, s.uid, catalog.id) is not None]

    def points(student: StudentProfile) -> int:
        if catalog is None:
            return student.global_xp or 0
        record = _find(records, student.uid, catalog.id)
        return total_score(record) if record else 0

    selected.sort(key=points, reverse=descending)

    headers = ["Explorer Name", "Email", "Classroom", "Global XP"]
    if catalog is not None:
        headers += [f"Node XP ({catalog.title})", "Node Completion %"]
    else:
        headers.append("Completed Nodes Count")

    rows: List[List[object]] = []
    for s in selected:
        row: List[object] = [s.name, s.email, class_names.get(s.class_id, "Unassigned"), s.global_xp]
        if catalog is not None:
            record = _find(records, s.uid, catalog.id)
            completion = completion_percentage(catalog, record) if record else 0
            row += [points(s), f"{completion}%"]
        else:
            row.append(sum(1 for r in records if r.student_uid == s.uid))
        rows.append(row)
    return headers, rows


def observer_report(
    students: List[StudentProfile],
    classroom: ClassProfile,
    records: List[Progress],
    catalog: Optional[MissionCatalog] = None,
) -> Table:
    """Every student of the observer's class, in roster order, whatever their status."""
    headers = ["Explorer", "Email", "Class", "Status"]
    if catalog is not None:
        headers += [f"Points ({catalog.title})", "Node Progress %"]
    else:
        headers += ["Total Global XP", "Active Mission Packs"]

    rows: List[List[object]] = []
    for s in students:
        row: List[object] = [s.name, s.email, classroom.name, s.status.value]
        if catalog is not None:
            record = _find(records, s.uid, catalog.id)
            completion = completion_percentage(catalog, record) if record else 0
            row += [total_score(record) if record else 0, f"{completion}%"]
        else:
            row += [s.global_xp, sum(1 for r in records if r.student_uid == s.uid)]
        rows.append(row)
    return headers, rows


def academy_analytics(
    approved: List[StudentProfile],
    catalogs: List[MissionCatalog],
    records: List[Progress],
) -> AcademyAnalytics:
    total = sum(s.global_xp or 0 for s in approved)
    average = total // len(approved) if approved else 0
    packs = []
    for catalog in catalogs:
        mission_ids = {m.id for m in catalog.questions}
        finished = sum(
            1
            for r in records
            if r.question_set_id == catalog.id and mission_ids <= set(r.completed_questions)
        )
        rate = round(finished / len(approved) * 100) if approved else 0
        packs.append(PackStat(id=catalog.id, title=catalog.title, completion_rate=rate))
    recent = sorted(records, key=lambda r: r.last_active or 0, reverse=True)[:RECENT_ACTIVITY_LIMIT]
    return AcademyAnalytics(
        total_xp=total,
        average_xp=average,
        approved_students=len(approved),
        packs=packs,
        recent_activity=recent,
    )


class ReportService:
    async def _catalog(self, teacher_id: str, catalog_id: Optional[str]) -> Optional[MissionCatalog]:
        if not catalog_id:
            return None
        catalog = await catalog_service.get_catalog(catalog_id)
        if catalog.teacher_id != teacher_id:
            raise LookupError("catalog_not_found")
        return catalog

    async def teacher_csv(
        self,
        teacher_id: str,
        *,
        catalog_id: Optional[str] = None,
        class_id: Optional[str] = None,
        descending: bool = True,
    ) -> Tuple[str, str]:
        catalog = await self._catalog(teacher_id, catalog_id)
        students = await roster_service.list_approved(teacher_id)
        classes = await roster_service.list_classes(teacher_id)
        records = await progression_service.list_for_teacher(teacher_id)
        headers, rows = teacher_report(students, classes, records, catalog, class_id=class_id, descending=descending)
        logger.info("teacher report teacher=%s catalog=%s rows=%d", teacher_id, catalog_id, len(rows))
        return report_filename(catalog.title if catalog else None), render_csv(headers, rows)

    async def observer_csv(self, teacher_id: str, class_id: str, *, catalog_id: Optional[str] = None) -> Tuple[str, str]:
        catalog = await self._catalog(teacher_id, catalog_id)
        classes = await roster_service.list_classes(teacher_id)
        classroom = next((c for c in classes if c.id == class_id), None)
        if classroom is None:
            raise LookupError("class_not_found")
        students = await roster_service.list_class_students(class_id)
        records = await progression_service.list_for_class(class_id)
        headers, rows = observer_report(students, classroom, records, catalog)
        return observer_report_filename(classroom.name, catalog.title if catalog else None), render_csv(headers, rows)

    async def analytics(self, teacher_id: str) -> AcademyAnalytics:
        approved = await roster_service.list_approved(teacher_id)
        catalogs = await catalog_service.list_for_teacher(teacher_id)
        records = await progression_service.list_for_teacher(teacher_id)
        return academy_analytics(approved, catalogs, records)


report_service = ReportService()

__all__ = [
    "report_service",
    "ReportService",
    "render_csv",
    "report_filename",
    "observer_report_filename",
    "content_disposition",
    "teacher_report",
    "observer_report",
    "academy_analytics",
]
