import csv
from datetime import date
from io import StringIO

from academy.features.catalog.models import Tier
from academy.features.progression.schemas import Progress
from academy.features.reports.service import (
    academy_analytics,
    content_disposition,
    observer_report,
    observer_report_filename,
    render_csv,
    report_filename,
    teacher_report,
)
from academy.features.roster.schemas import ClassProfile, StudentProfile

from factories import make_catalog, make_mission


def _student(uid, name, xp, class_id="class-1", status="approved"):
    return StudentProfile(
        uid=uid,
        name=name,
        email=f"{uid}@school.test",
        global_xp=xp,
        status=status,
        class_id=class_id,
        master_key="teacher-1",
    )


def _record(uid, catalog_id, scores, completed, last_active=0, class_id="class-1"):
    return Progress(
        id=f"p_{uid}_{catalog_id}",
        student_uid=uid,
        teacher_id="teacher-1",
        class_id=class_id,
        question_set_id=catalog_id,
        scores=scores,
        completed_questions=completed,
        last_active=last_active,
    )


CATALOG = make_catalog([make_mission("e1", Tier.easy), make_mission("e2", Tier.easy)], id="set-1", title="Loops")
CLASSES = [ClassProfile(id="class-1", teacher_id="teacher-1", name="Grade 9", code="GRA-111")]
STUDENTS = [
    _student("s-1", "Sam", 300),
    _student("s-2", "Kim, Jr.", 900),
    _student("s-3", "Lee", 50, class_id="class-x"),
]
RECORDS = [
    _record("s-1", "set-1", {"e1": 100}, ["e1"], last_active=30),
    _record("s-2", "set-1", {"e1": 100, "e2": 100}, ["e1", "e2"], last_active=10),
    _record("s-2", "set-9", {"x": 500}, ["x"], last_active=20),
]


def _parse(text):
    return list(csv.reader(StringIO(text)))


def test_global_teacher_report_sorted_by_xp():
    headers, rows = teacher_report(STUDENTS, CLASSES, RECORDS)
    assert headers == ["Explorer Name", "Email", "Classroom", "Global XP", "Completed Nodes Count"]
    assert [r[0] for r in rows] == ["Kim, Jr.", "Sam", "Lee"]
    assert rows[0][2:] == ["Grade 9", 900, 2]
    assert rows[2][2] == "Unassigned"


def test_catalog_teacher_report_filters_and_sorts_by_pack_points():
    headers, rows = teacher_report(STUDENTS, CLASSES, RECORDS, CATALOG, descending=False)
    assert headers[-2:] == ["Node XP (Loops)", "Node Completion %"]
    assert [r[0] for r in rows] == ["Sam", "Kim, Jr."]
    assert rows[0][-2:] == [100, "50%"]
    assert rows[1][-2:] == [200, "100%"]


def test_class_filter():
    _, rows = teacher_report(STUDENTS, CLASSES, RECORDS, class_id="class-x")
    assert [r[0] for r in rows] == ["Lee"]


def test_csv_quotes_commas():
    headers, rows = teacher_report(STUDENTS, CLASSES, RECORDS)
    text = render_csv(headers, rows)
    assert '"Kim, Jr."' in text
    parsed = _parse(text)
    assert parsed[1][0] == "Kim, Jr."
    assert len(parsed) == 4


def test_observer_report_lists_everyone_in_roster_order():
    students = [_student("s-1", "Sam", 300, status="pending"), _student("s-2", "Kim", 900)]
    headers, rows = observer_report(students, CLASSES[0], RECORDS)
    assert headers == ["Explorer", "Email", "Class", "Status", "Total Global XP", "Active Mission Packs"]
    assert rows[0] == ["Sam", "s-1@school.test", "Grade 9", "pending", 300, 1]
    assert rows[1][-1] == 2

    headers, rows = observer_report(students, CLASSES[0], RECORDS, CATALOG)
    assert headers[-2:] == ["Points (Loops)", "Node Progress %"]
    assert rows[1][-2:] == [200, "100%"]


def test_file_names():
    assert report_filename("Loops", date(2024, 3, 9)) == "academy_report_Loops_2024-03-09.csv"
    assert report_filename(None, date(2024, 3, 9)) == "academy_report_global_2024-03-09.csv"
    assert observer_report_filename("Grade 9", "Nested Loops") == "warden_report_Grade 9_Nested_Loops.csv"
    assert observer_report_filename("Grade 9", None) == "warden_global_report_Grade 9.csv"


def test_analytics():
    approved = STUDENTS[:2]
    catalogs = [CATALOG, make_catalog([make_mission("x", Tier.easy)], id="set-9", title="Extra")]
    stats = academy_analytics(approved, catalogs, RECORDS)
    assert stats.total_xp == 1200
    assert stats.average_xp == 600
    assert {p.id: p.completion_rate for p in stats.packs} == {"set-1": 50, "set-9": 50}
    assert [r.id for r in stats.recent_activity] == ["p_s-1_set-1", "p_s-2_set-9", "p_s-2_set-1"]
    assert academy_analytics([], catalogs, RECORDS).average_xp == 0


def test_observer_file_name_collapses_whitespace_runs():
    assert observer_report_filename("Grade 9", "Nested  Loops\tTwo") == "warden_report_Grade 9_Nested_Loops_Two.csv"


def test_content_disposition_survives_any_title():
    header = content_disposition(report_filename('Loops 🐍 "v2"', date(2024, 3, 9)))
    header.encode("latin-1")
    fallback, encoded = header.split("; filename*=")
    assert fallback == 'attachment; filename="academy_report_Loops _ _v2__2024-03-09.csv"'
    assert encoded.startswith("UTF-8''academy_report_Loops%20%F0%9F%90%8D%20%22v2%22_")

    assert content_disposition("plain.csv") == "attachment; filename=\"plain.csv\"; filename*=UTF-8''plain.csv"
