from datetime import datetime

import pytest

from academics.eligibility import COMPLETED, IN_PROGRESS, READY, WAITING, get_today_lecture_statuses, lecture_status
from academics.sessions import complete_attendance_session, start_attendance_session
from academics.timetable import create_timetable_entry

# 2025-06-02 is a Monday
MONDAY_0930 = datetime(2025, 6, 2, 9, 30)


def _at(hour, minute, second=0, day=2):
    return datetime(2025, 6, day, hour, minute, second)


@pytest.mark.django_db
def test_ready_inside_the_window(entry):
    status = lecture_status(entry, None, MONDAY_0930)
    assert status["status"] == READY
    assert status["can_take_attendance"] is True
    assert status["is_ongoing"] is True
    assert (status["time_start"], status["time_end"]) == ("09:00", "10:30")


@pytest.mark.django_db
@pytest.mark.parametrize("hour,minute,second", [(9, 0, 0), (10, 30, 0), (10, 30, 45)])
def test_window_bounds_are_inclusive_to_the_minute(entry, hour, minute, second):
    assert lecture_status(entry, None, _at(hour, minute, second))["status"] == READY


@pytest.mark.django_db
def test_before_the_window_waits(entry):
    status = lecture_status(entry, None, _at(8, 0))
    assert status["status"] == WAITING
    assert status["can_take_attendance"] is False
    assert status["has_ended"] is False


@pytest.mark.django_db
def test_after_the_window_without_session_waits(entry):
    status = lecture_status(entry, None, _at(11, 0))
    assert status["status"] == WAITING
    assert status["has_ended"] is True
    assert status["can_take_attendance"] is False


@pytest.mark.django_db
def test_other_weekday_is_never_ready(entry):
    # 2025-06-03 is a Tuesday
    status = lecture_status(entry, None, _at(9, 30, day=3))
    assert status["status"] == WAITING
    assert status["is_today"] is False


@pytest.mark.django_db
def test_session_decides_status(entry, school_class, teacher):
    session = start_attendance_session(entry.pk, school_class.pk, teacher=teacher, now=MONDAY_0930)
    assert lecture_status(entry, session, _at(9, 45))["status"] == IN_PROGRESS
    complete_attendance_session(session.pk, teacher=teacher, now=_at(9, 50))
    session.refresh_from_db()
    status = lecture_status(entry, session, _at(9, 55))
    assert status["status"] == COMPLETED
    assert status["can_take_attendance"] is False


@pytest.mark.django_db
def test_today_statuses_for_a_class(entry, school_class, teacher, other_teacher):
    school_class.teachers.add(other_teacher)
    create_timetable_entry(
        school_class, teacher=other_teacher, subject="Physics", room="Lab",
        day="Monday", time="07:00 - 08:00", created_by=other_teacher,
    )
    create_timetable_entry(
        school_class, teacher=teacher, subject="Physics", room="Lab",
        day="Tuesday", time="09:00 - 10:00", created_by=teacher,
    )
    start_attendance_session(entry.pk, school_class.pk, teacher=teacher, now=MONDAY_0930)

    items = get_today_lecture_statuses(school_class.pk, now=_at(9, 45))
    assert [(i["entry"].subject, i["status"]) for i in items] == [("Physics", WAITING), ("Math", IN_PROGRESS)]
    assert items[1]["session"] is not None

    mine = get_today_lecture_statuses(school_class.pk, now=_at(9, 45), teacher=teacher)
    assert [i["entry"].pk for i in mine] == [entry.pk]
