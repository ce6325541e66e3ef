"""Timetable registry and conflict detection.

A class may hold at most one *active* entry per (day, time); deactivated
entries are kept as history and are allowed to collide. Every write checks
both the slot and the teacher's authorization for the class before touching
the database, and the partial unique constraint on the table backs the slot
check up when two writers race.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import Count

from .exceptions import AccessError, ConflictError, NotFoundError, ValidationError
from .locking import lock_for_update
from .models import SchoolClass, TimetableEntry
from .permissions import is_admin
from .timeslots import day_sort_key, normalize_day, normalize_time_range

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('subject', 'room', 'day', 'time', 'school_class', 'teacher', 'notes')


def get_class(class_or_id) -> SchoolClass:
    if isinstance(class_or_id, SchoolClass):
        return class_or_id
    obj = SchoolClass.objects.filter(pk=class_or_id).first()
    if obj is None:
        raise NotFoundError('Class not found')
    return obj


def _pk(obj_or_id):
    return getattr(obj_or_id, 'pk', obj_or_id)


def check_conflict(class_id, day, time, exclude_entry_id=None):
    """Return the active entry occupying (class, day, time), or None."""
    qs = TimetableEntry.objects.filter(
        school_class_id=_pk(class_id), day=day, time=time, is_active=True,
    )
    if exclude_entry_id is not None:
        qs = qs.exclude(pk=_pk(exclude_entry_id))
    return qs.order_by('id').first()


def validate_access(school_class, teacher):
    """Raise AccessError unless ``teacher`` is authorized for the class.

    Both the legacy single-teacher field and the teacher list are accepted.
    """
    if not school_class.has_teacher(teacher):
        raise AccessError('Selected teacher is not assigned to this class')


def _ensure_user_can_schedule(user, school_class):
    if user is None or is_admin(user):
        return
    if not school_class.has_teacher(user):
        raise AccessError('Class not found or access denied')


def _clean_text(value, field, max_length, required=True):
    value = (value or '').strip()
    if required and not value:
        raise ValidationError(f'{field.capitalize()} is required', field=field)
    if len(value) > max_length:
        raise ValidationError(f'{field.capitalize()} cannot exceed {max_length} characters', field=field)
    return value


def check_subject(school_class, subject):
    offered = school_class.subjects or []
    if offered and subject not in offered:
        raise ValidationError(f'{subject} is not a subject of {school_class.name}', field='subject')


def _raise_if_occupied(class_id, day, time, exclude_entry_id=None):
    existing = check_conflict(class_id, day, time, exclude_entry_id)
    if existing is not None:
        logger.warning(
            'Timetable conflict for class %s on %s %s (entry %s)', class_id, day, time, existing.pk,
        )
        raise ConflictError(
            f'Time slot {time} on {day} is already occupied by {existing.subject}',
            conflicting_entry=existing.pk,
        )


def create_timetable_entry(school_class, teacher, subject, room, day, time, created_by, notes=''):
    school_class = get_class(school_class)
    subject = _clean_text(subject, 'subject', 100)
    room = _clean_text(room, 'room', 50)
    notes = _clean_text(notes, 'notes', 500, required=False)
    day = normalize_day(day)
    time = normalize_time_range(time)
    if teacher is None:
        raise ValidationError('Teacher is required', field='teacher')
    if created_by is None:
        raise ValidationError('Created by is required', field='created_by')

    check_subject(school_class, subject)
    _ensure_user_can_schedule(created_by, school_class)
    validate_access(school_class, teacher)
    _raise_if_occupied(school_class.pk, day, time)

    entry = TimetableEntry(
        school_class=school_class,
        teacher=teacher,
        subject=subject,
        room=room,
        day=day,
        time=time,
        created_by=created_by,
        notes=notes,
    )
    try:
        with transaction.atomic():
            entry.save()
    except IntegrityError:
        # Another writer took the slot between our check and the insert
        raise ConflictError(f'Time slot {time} on {day} is already occupied')
    logger.info('Created timetable entry %s: %s %s %s', entry.pk, school_class, day, time)
    return entry


def _can_modify(user, entry) -> bool:
    if user is None or is_admin(user):
        return True
    if entry.created_by_id == user.pk or entry.teacher_id == user.pk:
        return True
    return entry.school_class.has_teacher(user)


def update_timetable_entry(entry_id, acting_user=None, expected_version=None, **changes):
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot change: {', '.join(sorted(unknown))}")

    try:
        with transaction.atomic():
            entry = lock_for_update(
                TimetableEntry.objects.select_related('school_class'), _pk(entry_id),
                expected_version, label='Timetable entry',
            )
            if not _can_modify(acting_user, entry):
                raise AccessError('Access denied to modify this timetable entry')

            school_class = entry.school_class
            if changes.get('school_class') is not None:
                school_class = get_class(changes['school_class'])
                if school_class.pk != entry.school_class_id:
                    _ensure_user_can_schedule(acting_user, school_class)
            teacher = changes.get('teacher') or entry.teacher
            subject = entry.subject
            if changes.get('subject') is not None:
                subject = _clean_text(changes['subject'], 'subject', 100)
            room = entry.room
            if changes.get('room') is not None:
                room = _clean_text(changes['room'], 'room', 50)
            day = normalize_day(changes['day']) if changes.get('day') else entry.day
            time = normalize_time_range(changes['time']) if changes.get('time') else entry.time

            class_changed = school_class.pk != entry.school_class_id
            if class_changed or _pk(teacher) != entry.teacher_id:
                validate_access(school_class, teacher)
            if class_changed or subject != entry.subject:
                check_subject(school_class, subject)
            if entry.is_active and (class_changed or day != entry.day or time != entry.time):
                _raise_if_occupied(school_class.pk, day, time, exclude_entry_id=entry.pk)

            entry.school_class = school_class
            entry.teacher_id = _pk(teacher)
            entry.subject = subject
            entry.room = room
            entry.day = day
            entry.time = time
            if 'notes' in changes and changes['notes'] is not None:
                entry.notes = _clean_text(changes['notes'], 'notes', 500, required=False)
            entry.version += 1
            entry.save()
    except IntegrityError:
        raise ConflictError('This time slot is already occupied for this class')
    logger.info('Updated timetable entry %s (version %s)', entry.pk, entry.version)
    return entry


def deactivate_timetable_entry(entry_id, acting_user=None, expected_version=None):
    with transaction.atomic():
        entry = lock_for_update(
            TimetableEntry.objects.select_related('school_class'), _pk(entry_id),
            expected_version, label='Timetable entry',
        )
        if not _can_modify(acting_user, entry):
            raise AccessError('Timetable entry not found or access denied')
        if entry.is_active:
            entry.is_active = False
            entry.version += 1
            entry.save(update_fields=['is_active', 'version', 'updated_at'])
            logger.info('Deactivated timetable entry %s', entry.pk)
    return entry


def _schedule_order(entries):
    return sorted(entries, key=lambda e: (day_sort_key(e.day), e.time, e.pk))


def get_class_schedule(class_id):
    """Active entries of a class, Monday first, then by start time."""
    school_class = get_class(class_id)
    qs = TimetableEntry.objects.filter(school_class=school_class, is_active=True).select_related('teacher')
    return _schedule_order(qs)


def get_teacher_timetable(teacher, class_id=None):
    qs = TimetableEntry.objects.filter(teacher=teacher, is_active=True).select_related('school_class')
    if class_id is not None:
        qs = qs.filter(school_class_id=class_id)
    return _schedule_order(qs)


def timetable_stats(teacher, class_id=None):
    qs = TimetableEntry.objects.filter(teacher=teacher, is_active=True)
    if class_id is not None:
        qs = qs.filter(school_class_id=class_id)
    by_day = list(qs.values('day').annotate(count=Count('id')))
    by_day.sort(key=lambda row: day_sort_key(row['day']))
    by_subject = list(qs.values('subject').annotate(count=Count('id')).order_by('-count', 'subject'))
    return {
        'total_entries': qs.count(),
        'entries_by_day': by_day,
        'entries_by_subject': by_subject,
    }
