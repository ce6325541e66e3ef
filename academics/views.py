import json
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from . import eligibility, sessions, summaries, timetable
from .exceptions import AcademicsError, AccessError, ValidationError
from .forms import (
    AttendanceRecordForm,
    DateRangeForm,
    StartAttendanceForm,
    TimetableEntryForm,
    first_error,
)
from .permissions import caps_for, has_feature, is_admin, role_for

logger = logging.getLogger(__name__)


def api_view(*methods):
    """Login + method guard, and map service errors to JSON responses."""
    def decorator(func):
        @login_required
        @require_http_methods(list(methods))
        @wraps(func)
        def wrapper(request, *args, **kwargs):
            try:
                return func(request, *args, **kwargs)
            except AcademicsError as e:
                return JsonResponse(e.as_dict(), status=e.status_code)
            except Exception:
                logger.exception('Unhandled error in %s', func.__name__)
                return JsonResponse(
                    {'success': False, 'error': 'Internal server error', 'category': 'server_error'},
                    status=500,
                )
        return wrapper
    return decorator


def _ok(data=None, status=200, **extra):
    body = {'success': True, 'data': data}
    body.update(extra)
    return JsonResponse(body, status=status)


def _payload(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except ValueError:
        raise ValidationError('Request body must be valid JSON')
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _require(user, feature):
    if not has_feature(user, feature):
        raise AccessError('Not authorized to perform this action')


def _require_class_teacher(user, school_class):
    if is_admin(user) or school_class.has_teacher(user):
        return
    raise AccessError('Class not found or access denied')


def _date_range(request):
    form = DateRangeForm(request.GET)
    if not form.is_valid():
        raise ValidationError(first_error(form))
    return form.cleaned_data['start_date'], form.cleaned_data['end_date']


def _records(raw):
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError('records must be a list', field='records')
    out = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError('Each record must be an object', field='records')
        item = dict(item)
        item.setdefault('student', item.get('student_id'))
        form = AttendanceRecordForm(item)
        if not form.is_valid():
            raise ValidationError(first_error(form), field='records')
        rec = dict(form.cleaned_data)
        if 'notes' not in item:
            rec['notes'] = None
        out.append(rec)
    return out


def _user_dict(user):
    if user is None:
        return None
    return {'id': user.pk, 'name': user.get_full_name() or user.username, 'email': user.email}


def _entry_dict(entry):
    return {
        'id': entry.pk,
        'subject': entry.subject,
        'teacher': _user_dict(entry.teacher),
        'room': entry.room,
        'day': entry.day,
        'time': entry.time,
        'class_id': entry.school_class_id,
        'class': entry.school_class.name,
        'notes': entry.notes,
        'is_active': entry.is_active,
        'version': entry.version,
    }


def _session_dict(session, with_records=True):
    data = {
        'id': session.pk,
        'class_id': session.school_class_id,
        'teacher_id': session.teacher_id,
        'subject': session.subject,
        'date': session.date,
        'time_slot': session.time_slot,
        'room': session.room,
        'timetable_entry_id': session.timetable_entry_id,
        'total_students': session.total_students,
        'present_count': session.present_count,
        'absent_count': session.absent_count,
        'late_count': session.late_count,
        'attendance_percentage': session.attendance_percentage,
        'is_completed': session.is_completed,
        'status': session.status,
        'started_at': session.started_at,
        'completed_at': session.completed_at,
        'notes': session.notes,
        'version': session.version,
    }
    if with_records:
        data['records'] = [
            {
                'student': _user_dict(r.student),
                'status': r.status,
                'marked_at': r.marked_at,
                'notes': r.notes,
            }
            for r in session.records.select_related('student')
        ]
    return data


def _lecture_dict(item):
    entry = item['entry']
    session = item['session']
    return {
        'entry': _entry_dict(entry),
        'status': item['status'],
        'can_take_attendance': item['can_take_attendance'],
        'time_start': item['time_start'],
        'time_end': item['time_end'],
        'is_ongoing': item['is_ongoing'],
        'has_ended': item['has_ended'],
        'attendance_id': session.pk if session else None,
    }


@api_view('GET')
def me(request):
    return _ok({'id': request.user.pk, 'role': role_for(request.user), 'caps': caps_for(request.user)})


@api_view('GET', 'POST')
def class_timetable(request, class_id: int):
    school_class = timetable.get_class(class_id)
    if request.method == 'GET':
        if not (is_admin(request.user) or school_class.has_teacher(request.user)
                or school_class.has_student(request.user)):
            raise AccessError('Class not found or access denied')
        entries = timetable.get_class_schedule(school_class)
        return _ok([_entry_dict(e) for e in entries], count=len(entries))

    _require(request.user, 'manage_timetable')
    form = TimetableEntryForm(_payload(request))
    if not form.is_valid():
        raise ValidationError(first_error(form))
    entry = timetable.create_timetable_entry(
        school_class,
        teacher=form.cleaned_data['teacher'],
        subject=form.cleaned_data['subject'],
        room=form.cleaned_data['room'],
        day=form.cleaned_data['day'],
        time=form.cleaned_data['time'],
        created_by=request.user,
        notes=form.cleaned_data.get('notes') or '',
    )
    return _ok(_entry_dict(entry), status=201, message='Timetable entry created successfully')


@api_view('PATCH', 'PUT')
def timetable_entry_detail(request, entry_id: int):
    _require(request.user, 'manage_timetable')
    data = _payload(request)
    version = data.pop('version', None)
    class_id = data.pop('class_id', None)
    form = TimetableEntryForm(data, partial=True)
    if not form.is_valid():
        raise ValidationError(first_error(form))
    changes = form.changes()
    if class_id is not None:
        changes['school_class'] = class_id
    entry = timetable.update_timetable_entry(
        entry_id, acting_user=request.user, expected_version=version, **changes
    )
    return _ok(_entry_dict(entry), message='Timetable entry updated successfully')


@api_view('POST')
def timetable_entry_deactivate(request, entry_id: int):
    _require(request.user, 'manage_timetable')
    version = _payload(request).get('version')
    entry = timetable.deactivate_timetable_entry(entry_id, acting_user=request.user, expected_version=version)
    return _ok(_entry_dict(entry), message='Timetable entry deactivated')


@api_view('GET')
def my_timetable(request):
    _require(request.user, 'manage_timetable')
    entries = timetable.get_teacher_timetable(request.user, request.GET.get('class_id') or None)
    return _ok([_entry_dict(e) for e in entries], count=len(entries))


@api_view('GET')
def my_timetable_stats(request):
    _require(request.user, 'manage_timetable')
    return _ok(timetable.timetable_stats(request.user, request.GET.get('class_id') or None))


@api_view('GET')
def today_lectures(request, class_id: int):
    _require(request.user, 'take_attendance')
    school_class = timetable.get_class(class_id)
    _require_class_teacher(request.user, school_class)
    now = timezone.localtime()
    teacher = None if is_admin(request.user) else request.user
    items = eligibility.get_today_lecture_statuses(school_class.pk, now=now, teacher=teacher)
    return _ok({
        'lectures': [_lecture_dict(i) for i in items],
        'current_time': now.strftime('%H:%M'),
        'current_day': now.strftime('%A'),
        'date': now.date(),
    })


@api_view('POST')
def attendance_start(request):
    _require(request.user, 'take_attendance')
    data = _payload(request)
    form = StartAttendanceForm(data)
    if not form.is_valid():
        raise ValidationError(first_error(form))
    session = sessions.start_attendance_session(
        form.cleaned_data['timetable_entry_id'],
        form.cleaned_data['class_id'],
        initial_records=_records(data.get('records')),
        teacher=request.user,
    )
    return _ok(_session_dict(session), status=201, message='Attendance session started successfully')


@api_view('GET', 'PUT')
def attendance_detail(request, session_id: int):
    _require(request.user, 'take_attendance')
    if request.method == 'GET':
        session = sessions.get_attendance_session(session_id, teacher=request.user)
        return _ok(_session_dict(session))

    data = _payload(request)
    is_completed = data.get('is_completed')
    if is_completed is not None and not isinstance(is_completed, bool):
        raise ValidationError('is_completed must be a boolean', field='is_completed')
    session = sessions.save_attendance(
        session_id,
        records=_records(data.get('records')),
        notes=data.get('notes'),
        is_completed=is_completed,
        teacher=request.user,
        expected_version=data.get('version'),
    )
    return _ok(_session_dict(session), message='Attendance updated successfully')


@api_view('POST')
def attendance_mark(request, session_id: int):
    _require(request.user, 'take_attendance')
    data = _payload(request)
    form = AttendanceRecordForm({**data, 'student': data.get('student', data.get('student_id'))})
    if not form.is_valid():
        raise ValidationError(first_error(form))
    session = sessions.mark_student_attendance(
        session_id,
        form.cleaned_data['student'],
        form.cleaned_data['status'],
        notes=form.cleaned_data.get('notes') or '',
        teacher=request.user,
        expected_version=data.get('version'),
    )
    return _ok(_session_dict(session))


@api_view('POST')
def attendance_complete(request, session_id: int):
    _require(request.user, 'take_attendance')
    data = _payload(request)
    session = sessions.complete_attendance_session(
        session_id,
        records=_records(data.get('records')),
        notes=data.get('notes'),
        teacher=request.user,
        expected_version=data.get('version'),
    )
    return _ok(_session_dict(session), message='Attendance completed')


@api_view('GET')
def class_attendance_summary(request, class_id: int):
    _require(request.user, 'view_reports')
    school_class = timetable.get_class(class_id)
    _require_class_teacher(request.user, school_class)
    start, end = _date_range(request)
    return _ok(summaries.class_summary(school_class, start, end))


@api_view('GET')
def student_attendance_summary(request, class_id: int, student_id: int):
    school_class = timetable.get_class(class_id)
    own = request.user.pk == student_id and school_class.has_student(request.user)
    if not own:
        _require(request.user, 'view_reports')
        _require_class_teacher(request.user, school_class)
    start, end = _date_range(request)
    return _ok(summaries.student_summary(student_id, school_class, start, end))


@api_view('GET')
def my_attendance(request, class_id: int):
    _require(request.user, 'view_own_attendance')
    school_class = timetable.get_class(class_id)
    if not school_class.has_student(request.user):
        raise AccessError('Class not found or you are not enrolled')
    return _ok(summaries.student_attendance_history(request.user.pk, school_class))


@api_view('GET')
def attendance_overview(request):
    _require(request.user, 'view_reports')
    data = summaries.attendance_overview(
        request.user,
        class_id=request.GET.get('class_id') or None,
        days=request.GET.get('period') or None,
    )
    return _ok(data)


@api_view('GET')
def attendance_export(request, class_id: int):
    _require(request.user, 'view_reports')
    school_class = timetable.get_class(class_id)
    _require_class_teacher(request.user, school_class)
    start, end = _date_range(request)
    teacher = None if is_admin(request.user) else request.user
    fmt = request.GET.get('format', 'csv')
    stamp = timezone.localdate().isoformat()
    if fmt == 'csv':
        content = summaries.export_attendance_csv(school_class, teacher, start, end)
        resp = HttpResponse(content, content_type='text/csv')
        resp['Content-Disposition'] = f'attachment; filename="attendance-{school_class.name}-{stamp}.csv"'
        return resp
    if fmt == 'xlsx':
        wb = summaries.export_attendance_xlsx(school_class, teacher, start, end)
        resp = HttpResponse(content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
        resp['Content-Disposition'] = f'attachment; filename="attendance-{school_class.name}-{stamp}.xlsx"'
        wb.save(resp)
        return resp
    raise ValidationError('format must be csv or xlsx', field='format')
