"""Read-only attendance reports, recomputed on every request.

``class_summary`` averages the per-session percentages without weighting by
roster size, so a 10-student lecture and a 40-student lecture count the same.
"""
import csv
from datetime import date, timedelta
from io import StringIO

from django.conf import settings
from django.db.models import Avg, Count, Prefetch, Q, Sum
from django.utils.dateparse import parse_date

from .exceptions import ValidationError
from .models import ABSENT, LATE, PRESENT, AttendanceRecord, AttendanceSession
from .stats import attended_percentage
from .timeslots import local_now
from .timetable import get_class

EXPORT_HEADERS = ['Date', 'Subject', 'Time Slot', 'Student Name', 'Student Email', 'Status', 'Marked At']


def _as_date(value, field):
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f'{field} must be a date (YYYY-MM-DD)', field=field)
    return parsed


def _in_range(qs, start_date, end_date, prefix=''):
    start = _as_date(start_date, 'start_date')
    end = _as_date(end_date, 'end_date')
    if start:
        qs = qs.filter(**{f'{prefix}date__gte': start})
    if end:
        qs = qs.filter(**{f'{prefix}date__lte': end})
    return qs


def _student_name(user):
    return user.get_full_name() or user.username


def _session_totals(qs, **extra):
    agg = qs.aggregate(
        total_sessions=Count('id'),
        average_attendance=Avg('attendance_percentage'),
        total_present=Sum('present_count'),
        total_absent=Sum('absent_count'),
        total_late=Sum('late_count'),
        completed_sessions=Count('id', filter=Q(is_completed=True)),
        **extra,
    )
    out = {k: (v or 0) for k, v in agg.items()}
    out['average_attendance'] = float(agg['average_attendance'] or 0.0)
    return out


def class_summary(class_id, start_date=None, end_date=None):
    school_class = get_class(class_id)
    qs = _in_range(AttendanceSession.objects.filter(school_class=school_class), start_date, end_date)
    return _session_totals(qs)


def student_summary(student_id, class_id, start_date=None, end_date=None):
    school_class = get_class(class_id)
    recs = _in_range(
        AttendanceRecord.objects.filter(student_id=student_id, session__school_class=school_class),
        start_date, end_date, prefix='session__',
    )
    agg = recs.aggregate(
        total_sessions=Count('id'),
        present_count=Count('id', filter=Q(status=PRESENT)),
        absent_count=Count('id', filter=Q(status=ABSENT)),
        late_count=Count('id', filter=Q(status=LATE)),
    )
    attended = agg['present_count'] + agg['late_count']
    details = [
        {
            'session_id': r.session_id,
            'date': r.session.date,
            'subject': r.session.subject,
            'time_slot': r.session.time_slot,
            'status': r.status,
            'marked_at': r.marked_at,
            'notes': r.notes,
        }
        for r in recs.select_related('session').order_by('-session__date', 'session__time_slot')
    ]
    return {
        'total_sessions': agg['total_sessions'],
        'present_count': agg['present_count'],
        'absent_count': agg['absent_count'],
        'late_count': agg['late_count'],
        'attendance_percentage': attended_percentage(attended, agg['total_sessions'], places=2),
        'records': details,
    }


def attendance_overview(teacher, class_id=None, days=None, now=None):
    """Dashboard numbers for a teacher over the trailing ``days``."""
    if days is None:
        days = getattr(settings, 'ACADEMICS_STATS_DEFAULT_DAYS', 30)
    try:
        days = int(days)
    except (TypeError, ValueError):
        raise ValidationError('period must be a number of days', field='period')
    end = local_now(now).date()
    start = end - timedelta(days=days)
    qs = AttendanceSession.objects.filter(teacher=teacher, date__gte=start, date__lte=end)
    if class_id is not None:
        qs = qs.filter(school_class_id=class_id)

    per_group = dict(
        sessions_count=Count('id'),
        average_attendance=Avg('attendance_percentage'),
        total_present=Sum('present_count'),
        total_students=Sum('total_students'),
    )
    trends = list(qs.values('date').annotate(**per_group).order_by('date'))
    subjects = list(qs.values('subject').annotate(**per_group).order_by('-average_attendance', 'subject'))
    return {
        'start_date': start,
        'end_date': end,
        'overview': _session_totals(qs, total_students_marked=Sum('total_students')),
        'trends': trends,
        'subject_stats': subjects,
    }


def student_attendance_history(student_id, class_id):
    """Per-session rows for one student; no record in a session reads as absent."""
    school_class = get_class(class_id)
    sessions = (
        AttendanceSession.objects.filter(school_class=school_class)
        .prefetch_related(Prefetch(
            'records',
            queryset=AttendanceRecord.objects.filter(student_id=student_id),
            to_attr='student_records',
        ))
        .order_by('-date', 'time_slot')
    )
    rows = []
    for s in sessions:
        rec = s.student_records[0] if s.student_records else None
        rows.append({
            'session_id': s.pk,
            'date': s.date,
            'subject': s.subject,
            'time_slot': s.time_slot,
            'status': rec.status if rec else ABSENT,
            'marked_at': rec.marked_at if rec else None,
            'notes': rec.notes if rec else None,
        })
    return rows


def attendance_rows(class_id, teacher=None, start_date=None, end_date=None):
    school_class = get_class(class_id)
    recs = AttendanceRecord.objects.filter(session__school_class=school_class)
    if teacher is not None:
        recs = recs.filter(session__teacher=teacher)
    recs = _in_range(recs, start_date, end_date, prefix='session__')
    recs = recs.select_related('session', 'student').order_by('-session__date', 'session__time_slot', 'id')
    for r in recs:
        yield [
            r.session.date.isoformat(),
            r.session.subject,
            r.session.time_slot,
            _student_name(r.student),
            r.student.email,
            r.status,
            r.marked_at.isoformat() if r.marked_at else '',
        ]


def export_attendance_csv(class_id, teacher=None, start_date=None, end_date=None) -> str:
    out = StringIO()
    writer = csv.writer(out)
    writer.writerow(EXPORT_HEADERS)
    writer.writerows(attendance_rows(class_id, teacher, start_date, end_date))
    return out.getvalue()


def export_attendance_xlsx(class_id, teacher=None, start_date=None, end_date=None):
    import openpyxl
    from openpyxl.styles import Alignment, Font

    school_class = get_class(class_id)
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = f"Attendance {school_class.name}"[:31]

    for c, h in enumerate(EXPORT_HEADERS, 1):
        cell = ws.cell(row=1, column=c, value=h)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')
    for row in attendance_rows(school_class, teacher, start_date, end_date):
        ws.append(row)

    summary = class_summary(school_class, start_date, end_date)
    row = ws.max_row + 2
    ws.cell(row=row, column=1, value='Class Summary').font = Font(bold=True)
    for label, key in (
        ('Total Sessions', 'total_sessions'),
        ('Average Attendance %', 'average_attendance'),
        ('Total Present', 'total_present'),
        ('Total Absent', 'total_absent'),
        ('Total Late', 'total_late'),
        ('Completed Sessions', 'completed_sessions'),
    ):
        row += 1
        ws.cell(row=row, column=1, value=label)
        ws.cell(row=row, column=2, value=summary[key])

    # Auto width (simple heuristic)
    for column_cells in ws.columns:
        length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column_cells)
        ws.column_dimensions[column_cells[0].column_letter].width = max(10, min(30, length + 2))
    return wb
