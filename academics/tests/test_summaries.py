import csv
from datetime import date, datetime
from io import StringIO

import pytest

from academics.exceptions import NotFoundError, ValidationError
from academics.models import AttendanceRecord, AttendanceSession
from academics.stats import apply_aggregates
from academics.summaries import (
    EXPORT_HEADERS,
    attendance_overview,
    class_summary,
    export_attendance_csv,
    export_attendance_xlsx,
    student_attendance_history,
    student_summary,
)


def _session(school_class, teacher, day, statuses, students, slot="09:00 - 10:30", completed=True):
    """Build a session with the given per-student statuses and consistent counts."""
    s = AttendanceSession.objects.create(
        school_class=school_class, teacher=teacher, subject="Math",
        date=day, time_slot=slot, is_completed=completed,
    )
    for student, status in zip(students, statuses):
        AttendanceRecord.objects.create(session=s, student=student, status=status)
    apply_aggregates(s)
    s.save()
    return s


@pytest.mark.django_db
def test_class_average_is_unweighted(school_class, teacher):
    for n, pct in enumerate([80, 100, 60]):
        AttendanceSession.objects.create(
            school_class=school_class, teacher=teacher, subject="Math",
            date=date(2025, 6, 2 + n), time_slot="09:00 - 10:30", attendance_percentage=pct,
        )
    summary = class_summary(school_class.pk)
    assert summary["total_sessions"] == 3
    assert summary["average_attendance"] == 80.0


@pytest.mark.django_db
def test_class_summary_totals_and_range(school_class, teacher, students):
    _session(school_class, teacher, date(2025, 6, 2), ["present", "late", "absent"], students)
    _session(school_class, teacher, date(2025, 6, 9), ["present", "present", "absent"], students, completed=False)
    summary = class_summary(school_class, start_date="2025-06-01", end_date="2025-06-30")
    assert summary["total_sessions"] == 2
    assert summary["total_present"] == 3
    assert summary["total_absent"] == 2
    assert summary["total_late"] == 1
    assert summary["completed_sessions"] == 1

    only_first = class_summary(school_class, end_date=date(2025, 6, 5))
    assert only_first["total_sessions"] == 1


@pytest.mark.django_db
def test_empty_and_invalid_inputs(school_class):
    summary = class_summary(school_class)
    assert summary["total_sessions"] == 0
    assert summary["average_attendance"] == 0.0
    with pytest.raises(ValidationError):
        class_summary(school_class, start_date="not-a-date")
    with pytest.raises(NotFoundError):
        class_summary(999999)


@pytest.mark.django_db
def test_student_percentage_counts_late_as_attended(school_class, teacher, students):
    ana = students[0]
    for n, status in enumerate(["present", "present", "late", "absent"]):
        _session(school_class, teacher, date(2025, 6, 2 + n), [status], [ana])
    summary = student_summary(ana.pk, school_class.pk)
    assert summary["total_sessions"] == 4
    assert (summary["present_count"], summary["late_count"], summary["absent_count"]) == (2, 1, 1)
    assert summary["attendance_percentage"] == 75.0
    assert summary["records"][0]["date"] == date(2025, 6, 5)


@pytest.mark.django_db
def test_student_without_records(school_class, students):
    summary = student_summary(students[0].pk, school_class.pk)
    assert summary["total_sessions"] == 0
    assert summary["attendance_percentage"] == 0.0


@pytest.mark.django_db
def test_history_reads_missing_record_as_absent(school_class, teacher, students):
    ana, ben = students[0], students[1]
    _session(school_class, teacher, date(2025, 6, 2), ["present"], [ana])
    _session(school_class, teacher, date(2025, 6, 3), ["late"], [ben])
    history = student_attendance_history(ana.pk, school_class.pk)
    assert [(row["date"], row["status"]) for row in history] == [
        (date(2025, 6, 3), "absent"),
        (date(2025, 6, 2), "present"),
    ]
    assert history[0]["marked_at"] is None


@pytest.mark.django_db
def test_overview_for_trailing_period(school_class, teacher, other_teacher, students):
    _session(school_class, teacher, date(2025, 6, 2), ["present", "present", "absent"], students)
    _session(school_class, teacher, date(2025, 6, 3), ["present", "late", "absent"], students)
    _session(school_class, teacher, date(2025, 3, 1), ["present"], students)
    _session(school_class, other_teacher, date(2025, 6, 4), ["absent"], students)

    data = attendance_overview(teacher, days=30, now=datetime(2025, 6, 10, 12, 0))
    assert data["start_date"] == date(2025, 5, 11)
    assert data["end_date"] == date(2025, 6, 10)
    assert data["overview"]["total_sessions"] == 2
    assert data["overview"]["total_students_marked"] == 6
    assert [row["date"] for row in data["trends"]] == [date(2025, 6, 2), date(2025, 6, 3)]
    assert data["subject_stats"][0]["subject"] == "Math"
    assert data["subject_stats"][0]["sessions_count"] == 2

    with pytest.raises(ValidationError):
        attendance_overview(teacher, days="a month")


@pytest.mark.django_db
def test_csv_export(school_class, teacher, students):
    _session(school_class, teacher, date(2025, 6, 2), ["present", "late", "absent"], students)
    rows = list(csv.reader(StringIO(export_attendance_csv(school_class.pk))))
    assert rows[0] == EXPORT_HEADERS
    assert len(rows) == 4
    assert rows[1][:3] == ["2025-06-02", "Math", "09:00 - 10:30"]
    assert rows[1][3] == "Ana Abel"
    assert sorted(r[5] for r in rows[1:]) == ["absent", "late", "present"]


@pytest.mark.django_db
def test_xlsx_export_has_headers_and_summary(school_class, teacher, students):
    _session(school_class, teacher, date(2025, 6, 2), ["present", "late", "absent"], students)
    wb = export_attendance_xlsx(school_class.pk, teacher=teacher)
    ws = wb.active
    assert [c.value for c in ws[1]] == EXPORT_HEADERS
    assert ws.cell(row=6, column=1).value == "Class Summary"
    assert ws.cell(row=7, column=2).value == 1
