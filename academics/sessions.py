"""Attendance session lifecycle: start, mark, save, complete.

A session goes from draft (``is_completed=False``) to completed exactly once;
``completed_at`` is stamped on that first transition and never touched again.
Completed sessions still accept record amendments but cannot be reopened.

Every write path ends in ``_persist``, which derives the count fields from the
current records through ``stats.apply_aggregates``. Writes hold a row lock on
the session and bump its ``version``.
"""
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from .eligibility import COMPLETED, IN_PROGRESS, READY, lecture_status
from .exceptions import AccessError, ConflictError, NotFoundError, ValidationError
from .locking import lock_for_update
from .models import ABSENT, STATUS_CHOICES, AttendanceRecord, AttendanceSession, TimetableEntry
from .permissions import is_admin
from .stats import apply_aggregates
from .timeslots import local_now

logger = logging.getLogger(__name__)

VALID_STATUSES = {code for code, _ in STATUS_CHOICES}


def _pk(obj_or_id):
    return getattr(obj_or_id, 'pk', obj_or_id)


def _stamp(now=None):
    if now is None:
        return timezone.now()
    if settings.USE_TZ and timezone.is_naive(now):
        return timezone.make_aware(now)
    return now


def default_status():
    return getattr(settings, 'ACADEMICS_DEFAULT_RECORD_STATUS', ABSENT)


def _check_status(status):
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Status must be one of: {', '.join(sorted(VALID_STATUSES))}", field='status',
        )
    return status


def _normalize_record(item):
    """Accept {'student'|'student_id': .., 'status': .., 'notes': ..}."""
    sid = item.get('student_id', item.get('student'))
    if sid in (None, ''):
        raise ValidationError('Each record needs a student', field='records')
    try:
        sid = int(_pk(sid))
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid student id: {sid!r}', field='records')
    notes = item.get('notes')
    if notes is not None:
        notes = str(notes).strip()
        if len(notes) > 200:
            raise ValidationError('Record notes cannot exceed 200 characters', field='records')
    return sid, _check_status(item.get('status')), notes


def _ensure_session_access(session, teacher):
    if teacher is None or is_admin(teacher):
        return
    if session.teacher_id == teacher.pk or session.school_class.has_teacher(teacher):
        return
    raise AccessError('Attendance record not found or access denied')


def _persist(session):
    apply_aggregates(session, list(session.records.all()))
    session.version += 1
    session.save()
    return session


def get_attendance_session(session_id, teacher=None):
    session = (
        AttendanceSession.objects.select_related('school_class', 'teacher', 'timetable_entry')
        .prefetch_related('records__student')
        .filter(pk=_pk(session_id))
        .first()
    )
    if session is None:
        raise NotFoundError('Attendance record not found')
    _ensure_session_access(session, teacher)
    return session


def _refuse_start(gate):
    if gate['status'] in (COMPLETED, IN_PROGRESS):
        raise ConflictError(
            'Attendance already exists for this lecture today',
            attendance_id=gate['session'].pk,
        )
    if not gate['is_today']:
        raise ValidationError('This lecture is not scheduled for today')
    if gate['has_ended']:
        raise ValidationError('The lecture period has already ended')
    raise ValidationError('Cannot take attendance before the lecture period starts')


def start_attendance_session(timetable_entry_id, class_id, initial_records=(), teacher=None, now=None):
    now = local_now(now)
    entry = (
        TimetableEntry.objects.select_related('school_class')
        .filter(pk=_pk(timetable_entry_id), is_active=True)
        .first()
    )
    if entry is None:
        raise NotFoundError('Timetable entry not found or access denied')
    if str(entry.school_class_id) != str(_pk(class_id)):
        raise ValidationError('Timetable entry does not belong to this class')
    school_class = entry.school_class
    if teacher is not None and not is_admin(teacher) and not school_class.has_teacher(teacher):
        raise AccessError('You are not assigned to this class')

    today = now.date()
    existing = (
        AttendanceSession.objects.filter(timetable_entry=entry, date=today).first()
        or AttendanceSession.objects.filter(
            school_class=school_class, subject=entry.subject, time_slot=entry.time, date=today,
        ).first()
    )
    gate = lecture_status(entry, existing, now)
    if gate['status'] != READY:
        _refuse_start(gate)

    roster = list(school_class.students.order_by('last_name', 'first_name', 'username'))
    if not roster:
        raise ValidationError('No students found in this class')
    roster_ids = {s.pk for s in roster}

    given = {}
    for item in initial_records or ():
        sid, status, notes = _normalize_record(item)
        if sid not in roster_ids:
            raise ValidationError(f'Student {sid} is not enrolled in {school_class.name}', field='records')
        given[sid] = (status, notes or '')

    stamp = _stamp(now)
    fallback = _check_status(default_status())
    session = AttendanceSession(
        school_class=school_class,
        teacher=teacher if teacher is not None else entry.teacher,
        subject=entry.subject,
        date=today,
        time_slot=entry.time,
        room=entry.room,
        timetable_entry=entry,
        started_at=stamp,
    )
    try:
        with transaction.atomic():
            session.save()
            records = []
            for student in roster:
                status, notes = given.get(student.pk, (fallback, ''))
                records.append(AttendanceRecord(
                    session=session, student=student, status=status, notes=notes, marked_at=stamp,
                ))
            AttendanceRecord.objects.bulk_create(records)
            _persist(session)
    except IntegrityError:
        raise ConflictError('Attendance already exists for this lecture today')
    logger.info(
        'Started attendance session %s for %s %s on %s (%s students)',
        session.pk, school_class, entry.subject, today, session.total_students,
    )
    return session


def mark_student_attendance(session_id, student_id, status, notes='', teacher=None, now=None,
                            expected_version=None):
    """Upsert one student's record and recompute the session counts."""
    sid, status, notes = _normalize_record({'student_id': student_id, 'status': status, 'notes': notes})
    stamp = _stamp(now)
    with transaction.atomic():
        session = lock_for_update(
            AttendanceSession.objects.select_related('school_class'), _pk(session_id),
            expected_version, label='Attendance session',
        )
        _ensure_session_access(session, teacher)
        record = session.records.filter(student_id=sid).first()
        if record is None:
            if not session.school_class.has_student(sid):
                raise ValidationError(f'Student {sid} is not enrolled in {session.school_class.name}')
            record = AttendanceRecord(session=session, student_id=sid)
        record.status = status
        record.notes = notes or ''
        record.marked_at = stamp
        record.save()
        _persist(session)
    logger.info('Marked student %s %s in session %s', sid, status, session.pk)
    return session


def save_attendance(session_id, records=(), notes=None, is_completed=None, teacher=None, now=None,
                    expected_version=None):
    """Merge a batch of records into the session, optionally completing it."""
    batch = [_normalize_record(item) for item in (records or ())]
    stamp = _stamp(now)
    with transaction.atomic():
        session = lock_for_update(
            AttendanceSession.objects.select_related('school_class'), _pk(session_id),
            expected_version, label='Attendance session',
        )
        _ensure_session_access(session, teacher)
        if is_completed is False and session.is_completed:
            raise ValidationError('A completed attendance session cannot be reopened')

        existing = {r.student_id: r for r in session.records.all()}
        for sid, status, rec_notes in batch:
            record = existing.get(sid)
            if record is None:
                if not session.school_class.has_student(sid):
                    raise ValidationError(f'Student {sid} is not enrolled in {session.school_class.name}')
                record = AttendanceRecord(session=session, student_id=sid)
                existing[sid] = record
            record.status = status
            if rec_notes is not None:
                record.notes = rec_notes
            record.marked_at = stamp
            record.save()

        if notes is not None:
            session.notes = str(notes).strip()[:500]
        if is_completed and not session.is_completed:
            session.is_completed = True
        if session.is_completed and session.completed_at is None:
            session.completed_at = stamp
        _persist(session)
    logger.info(
        'Saved attendance session %s: %s records, completed=%s',
        session.pk, len(batch), session.is_completed,
    )
    return session


def complete_attendance_session(session_id, records=(), notes=None, teacher=None, now=None,
                                expected_version=None):
    return save_attendance(
        session_id, records=records, notes=notes, is_completed=True,
        teacher=teacher, now=now, expected_version=expected_version,
    )
