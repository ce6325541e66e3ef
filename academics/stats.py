from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP

from .models import PRESENT, ABSENT, LATE

AttendanceCounts = namedtuple(
    'AttendanceCounts',
    ['total_students', 'present_count', 'absent_count', 'late_count', 'attendance_percentage'],
)


def round_half_up(value, places: int = 0):
    """Round like a person would (2.5 -> 3), not banker's rounding."""
    q = Decimal(1).scaleb(-places)
    d = Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP)
    return int(d) if places == 0 else float(d)


def attended_percentage(attended: int, total: int, places: int = 0):
    if not total:
        return 0 if places == 0 else 0.0
    return round_half_up(Decimal(100) * attended / total, places)


def recompute_aggregates(statuses) -> AttendanceCounts:
    """Derive session counts from the per-student statuses.

    Accepts any iterable of status strings (or objects with a ``status``
    attribute). The result is the only legitimate source of a session's
    count fields.
    """
    present = absent = late = total = 0
    for s in statuses:
        s = getattr(s, 'status', s)
        total += 1
        if s == PRESENT:
            present += 1
        elif s == ABSENT:
            absent += 1
        elif s == LATE:
            late += 1
        else:
            raise ValueError(f"Unknown attendance status: {s!r}")
    return AttendanceCounts(
        total_students=total,
        present_count=present,
        absent_count=absent,
        late_count=late,
        attendance_percentage=attended_percentage(present + late, total),
    )


def apply_aggregates(session, records=None) -> AttendanceCounts:
    """Write freshly derived counts onto ``session`` (not saved)."""
    if records is None:
        records = session.records.all()
    counts = recompute_aggregates(r.status for r in records)
    for field, value in counts._asdict().items():
        setattr(session, field, value)
    return counts


AGGREGATE_FIELDS = list(AttendanceCounts._fields)
