import pytest
from django.db import IntegrityError, transaction

from academics.exceptions import AccessError, ConflictError, NotFoundError, StaleWriteError, ValidationError
from academics.models import SchoolClass, TimetableEntry
from academics.timetable import (
    check_conflict,
    create_timetable_entry,
    deactivate_timetable_entry,
    get_class_schedule,
    get_teacher_timetable,
    timetable_stats,
    update_timetable_entry,
    validate_access,
)


def _add(school_class, teacher, day, time, subject="Math"):
    return create_timetable_entry(
        school_class, teacher=teacher, subject=subject, room="R101",
        day=day, time=time, created_by=teacher,
    )


@pytest.mark.django_db
def test_occupied_slot_is_rejected(entry, school_class, teacher):
    with pytest.raises(ConflictError) as exc:
        _add(school_class, teacher, "Monday", "09:00 - 10:30", subject="Physics")
    assert "already occupied by Math" in exc.value.message
    assert exc.value.context["conflicting_entry"] == entry.pk


@pytest.mark.django_db
def test_unpadded_time_collides_with_padded(entry, school_class, teacher):
    with pytest.raises(ConflictError):
        _add(school_class, teacher, "monday", "9:00 - 10:30")


@pytest.mark.django_db
def test_same_slot_in_another_class_is_fine(entry, teacher):
    other = SchoolClass.objects.create(name="10-B", teacher=teacher)
    assert _add(other, teacher, "Monday", "09:00 - 10:30").is_active


@pytest.mark.django_db
def test_check_conflict_excludes_the_entry_itself(entry, school_class):
    assert check_conflict(school_class.pk, "Monday", "09:00 - 10:30") == entry
    assert check_conflict(school_class.pk, "Monday", "09:00 - 10:30", exclude_entry_id=entry.pk) is None


@pytest.mark.django_db
def test_deactivated_slot_can_be_reused(entry, school_class, teacher):
    deactivate_timetable_entry(entry.pk, acting_user=teacher)
    again = _add(school_class, teacher, "Monday", "09:00 - 10:30", subject="Physics")
    assert again.is_active
    deactivate_timetable_entry(again.pk, acting_user=teacher)
    # Inactive history may hold several entries for one slot
    assert TimetableEntry.objects.filter(school_class=school_class, day="Monday", is_active=False).count() == 2


@pytest.mark.django_db
def test_database_enforces_one_active_entry_per_slot(entry, school_class, teacher):
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            TimetableEntry.objects.create(
                school_class=school_class, teacher=teacher, subject="Physics", room="R2",
                day="Monday", time="09:00 - 10:30", created_by=teacher,
            )


@pytest.mark.django_db
def test_unassigned_teacher_cannot_be_scheduled(school_class, teacher, other_teacher):
    with pytest.raises(AccessError):
        validate_access(school_class, other_teacher)
    with pytest.raises(AccessError):
        create_timetable_entry(
            school_class, teacher=other_teacher, subject="Math", room="R1",
            day="Tuesday", time="09:00 - 10:00", created_by=teacher,
        )
    # The teacher list counts as well as the primary teacher
    school_class.teachers.add(other_teacher)
    validate_access(school_class, other_teacher)


@pytest.mark.django_db
def test_subject_must_be_offered(school_class, teacher):
    with pytest.raises(ValidationError):
        _add(school_class, teacher, "Tuesday", "09:00 - 10:00", subject="History")


@pytest.mark.django_db
def test_update_moves_entry_and_bumps_version(entry, school_class, teacher):
    updated = update_timetable_entry(entry.pk, acting_user=teacher, day="Tuesday", room="Lab 2")
    assert (updated.day, updated.room, updated.version) == ("Tuesday", "Lab 2", 2)
    # Keeping its own slot is not a conflict
    update_timetable_entry(entry.pk, acting_user=teacher, time="09:00 - 10:30", notes="bring calculators")


@pytest.mark.django_db
def test_update_into_occupied_slot_conflicts(entry, school_class, teacher):
    other = _add(school_class, teacher, "Monday", "11:00 - 12:00", subject="Physics")
    with pytest.raises(ConflictError):
        update_timetable_entry(other.pk, acting_user=teacher, time="09:00 - 10:30")


@pytest.mark.django_db
def test_stale_version_is_rejected(entry, teacher):
    update_timetable_entry(entry.pk, acting_user=teacher, expected_version=1, room="R2")
    with pytest.raises(StaleWriteError) as exc:
        update_timetable_entry(entry.pk, acting_user=teacher, expected_version=1, room="R3")
    assert exc.value.context["current_version"] == 2


@pytest.mark.django_db
def test_unknown_entry_and_fields(entry, teacher, other_teacher):
    with pytest.raises(NotFoundError):
        deactivate_timetable_entry(999999, acting_user=teacher)
    with pytest.raises(ValidationError):
        update_timetable_entry(entry.pk, acting_user=teacher, is_active=False)
    with pytest.raises(AccessError):
        update_timetable_entry(entry.pk, acting_user=other_teacher, room="R9")


@pytest.mark.django_db
def test_schedule_is_ordered_by_weekday_then_time(entry, school_class, teacher):
    _add(school_class, teacher, "Wednesday", "08:00 - 09:00")
    _add(school_class, teacher, "Monday", "11:00 - 12:00", subject="Physics")
    _add(school_class, teacher, "Monday", "7:30 - 8:30", subject="Physics")
    schedule = get_class_schedule(school_class.pk)
    assert [(e.day, e.time) for e in schedule] == [
        ("Monday", "07:30 - 08:30"),
        ("Monday", "09:00 - 10:30"),
        ("Monday", "11:00 - 12:00"),
        ("Wednesday", "08:00 - 09:00"),
    ]


@pytest.mark.django_db
def test_teacher_timetable_and_stats(entry, school_class, teacher):
    _add(school_class, teacher, "Friday", "13:00 - 14:00", subject="Physics")
    _add(school_class, teacher, "Monday", "13:00 - 14:00")
    gone = _add(school_class, teacher, "Tuesday", "13:00 - 14:00")
    deactivate_timetable_entry(gone.pk, acting_user=teacher)

    assert len(get_teacher_timetable(teacher)) == 3
    stats = timetable_stats(teacher)
    assert stats["total_entries"] == 3
    assert stats["entries_by_day"] == [{"day": "Monday", "count": 2}, {"day": "Friday", "count": 1}]
    assert stats["entries_by_subject"][0] == {"subject": "Math", "count": 2}
