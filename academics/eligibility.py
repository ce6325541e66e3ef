"""Decide whether attendance can be taken for a lecture right now.

The status is never stored; it is recomputed from the timetable entry, the
session recorded for today (if any) and the supplied wall-clock time on each
request. A lecture whose window has passed without a session stays
``waiting``: nothing closes or creates sessions in the background.
"""
from .models import AttendanceSession, TimetableEntry
from .timeslots import local_now, parse_time_range, weekday_name

COMPLETED = 'completed'
IN_PROGRESS = 'in-progress'
READY = 'ready'
WAITING = 'waiting'


def lecture_status(entry, session, now):
    rng = parse_time_range(entry.time)
    current = now.time().replace(second=0, microsecond=0)
    is_today = weekday_name(now.date()) == entry.day
    is_ongoing = is_today and rng.start <= current <= rng.end
    has_ended = is_today and current > rng.end

    if session is not None:
        status = COMPLETED if session.is_completed else IN_PROGRESS
    elif is_ongoing:
        status = READY
    else:
        status = WAITING

    return {
        'entry': entry,
        'status': status,
        'can_take_attendance': status == READY,
        'session': session,
        'time_start': rng.start.strftime('%H:%M'),
        'time_end': rng.end.strftime('%H:%M'),
        'is_today': is_today,
        'is_ongoing': is_ongoing,
        'has_ended': has_ended,
    }


def sessions_for_day(entries, day):
    """Map timetable entry id -> session recorded on ``day``."""
    qs = AttendanceSession.objects.filter(timetable_entry__in=entries, date=day)
    return {s.timetable_entry_id: s for s in qs}


def get_today_lecture_statuses(class_id, now=None, teacher=None):
    now = local_now(now)
    entries = TimetableEntry.objects.filter(
        school_class_id=class_id, day=weekday_name(now.date()), is_active=True,
    ).select_related('school_class', 'teacher')
    if teacher is not None:
        entries = entries.filter(teacher=teacher)
    entries = list(entries.order_by('time', 'id'))
    by_entry = sessions_for_day(entries, now.date())
    return [lecture_status(e, by_entry.get(e.pk), now) for e in entries]
