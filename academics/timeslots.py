import re
from collections import namedtuple
from datetime import time

from django.utils import timezone

from .exceptions import ValidationError

WEEKDAYS = (
    'Monday',
    'Tuesday',
    'Wednesday',
    'Thursday',
    'Friday',
    'Saturday',
    'Sunday',
)
DAY_CHOICES = tuple((d, d) for d in WEEKDAYS)

# "09:00 - 10:30"; single-digit hours are accepted and padded on normalize
TIME_RANGE_RE = re.compile(
    r'^([0-1]?[0-9]|2[0-3]):([0-5][0-9])\s*-\s*([0-1]?[0-9]|2[0-3]):([0-5][0-9])$'
)

TimeRange = namedtuple('TimeRange', ['start', 'end'])


def parse_time_range(value) -> TimeRange:
    """Parse "HH:MM - HH:MM" into a pair of ``datetime.time``."""
    m = TIME_RANGE_RE.match((value or '').strip())
    if not m:
        raise ValidationError('Time must be in format "HH:MM - HH:MM"', field='time')
    h1, m1, h2, m2 = (int(g) for g in m.groups())
    start, end = time(h1, m1), time(h2, m2)
    if end <= start:
        raise ValidationError('Lecture must end after it starts', field='time')
    return TimeRange(start, end)


def format_time_range(rng: TimeRange) -> str:
    return f"{rng.start.strftime('%H:%M')} - {rng.end.strftime('%H:%M')}"


def normalize_time_range(value) -> str:
    return format_time_range(parse_time_range(value))


def normalize_day(value) -> str:
    raw = (value or '').strip().lower()
    for d in WEEKDAYS:
        if d.lower() == raw:
            return d
    raise ValidationError('Day must be a valid day of the week', field='day')


def weekday_name(d) -> str:
    # Monday=0 ... Sunday=6
    return WEEKDAYS[d.weekday()]


def day_sort_key(day: str) -> int:
    try:
        return WEEKDAYS.index(day)
    except ValueError:
        return len(WEEKDAYS)


def local_now(now=None):
    """Resolve the wall-clock time used for lecture windows.

    Aware datetimes are moved to the server's local zone; naive ones are
    taken as already local.
    """
    if now is None:
        return timezone.localtime()
    if timezone.is_aware(now):
        return timezone.localtime(now)
    return now
