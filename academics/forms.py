from django import forms
from django.contrib.auth import get_user_model

from . import exceptions
from .models import STATUS_CHOICES, AttendanceSession, TimetableEntry
from .timeslots import DAY_CHOICES, normalize_day, normalize_time_range
from .timetable import check_conflict, check_subject, validate_access


def _normalized(func, value):
    if not value:
        return value
    try:
        return func(value)
    except exceptions.ValidationError as e:
        raise forms.ValidationError(e.message)


class TimetableEntryForm(forms.Form):
    subject = forms.CharField(max_length=100)
    room = forms.CharField(max_length=50)
    day = forms.CharField(max_length=9, help_text=', '.join(d for d, _ in DAY_CHOICES))
    time = forms.CharField(max_length=20, help_text='HH:MM - HH:MM')
    teacher = forms.ModelChoiceField(queryset=get_user_model().objects.all())
    notes = forms.CharField(max_length=500, required=False)

    def __init__(self, *args, partial=False, **kwargs):
        super().__init__(*args, **kwargs)
        # PATCH payloads only carry the fields being changed
        if partial:
            for field in self.fields.values():
                field.required = False

    def clean_day(self):
        return _normalized(normalize_day, self.cleaned_data.get('day'))

    def clean_time(self):
        return _normalized(normalize_time_range, self.cleaned_data.get('time'))

    def changes(self):
        """Only the fields present in the submitted data."""
        return {k: v for k, v in self.cleaned_data.items() if k in self.data}


class AttendanceRecordForm(forms.Form):
    student = forms.IntegerField(min_value=1)
    status = forms.ChoiceField(choices=STATUS_CHOICES)
    notes = forms.CharField(max_length=200, required=False)


class StartAttendanceForm(forms.Form):
    timetable_entry_id = forms.IntegerField(min_value=1)
    class_id = forms.IntegerField(min_value=1)


class DateRangeForm(forms.Form):
    start_date = forms.DateField(required=False)
    end_date = forms.DateField(required=False)

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get('start_date'), cleaned.get('end_date')
        if start and end and start > end:
            raise forms.ValidationError('start_date must not be after end_date')
        return cleaned


def first_error(form) -> str:
    for field, errors in form.errors.items():
        label = '' if field == '__all__' else f'{field}: '
        return f'{label}{errors[0]}'
    return 'Invalid input'


class TimetableEntryAdminForm(forms.ModelForm):
    """Admin edits go through the same slot and access rules as the API."""

    class Meta:
        model = TimetableEntry
        fields = ['school_class', 'teacher', 'subject', 'room', 'day', 'time', 'notes', 'is_active']

    def clean_day(self):
        return _normalized(normalize_day, self.cleaned_data.get('day'))

    def clean_time(self):
        return _normalized(normalize_time_range, self.cleaned_data.get('time'))

    def clean(self):
        cleaned = super().clean()
        school_class = cleaned.get('school_class')
        teacher = cleaned.get('teacher')
        subject, day, time = cleaned.get('subject'), cleaned.get('day'), cleaned.get('time')
        if not all((school_class, teacher, subject, day, time)):
            return cleaned
        try:
            validate_access(school_class, teacher)
            check_subject(school_class, subject)
        except exceptions.AcademicsError as e:
            raise forms.ValidationError(e.message)
        if cleaned.get('is_active'):
            existing = check_conflict(school_class.pk, day, time, exclude_entry_id=self.instance.pk)
            if existing is not None:
                raise forms.ValidationError(
                    f'Time slot {time} on {day} is already occupied by {existing.subject}'
                )
        return cleaned


class AttendanceSessionAdminForm(forms.ModelForm):
    class Meta:
        model = AttendanceSession
        fields = [
            'school_class', 'teacher', 'subject', 'date', 'time_slot', 'room',
            'timetable_entry', 'is_completed', 'started_at', 'notes',
        ]

    def clean_is_completed(self):
        value = self.cleaned_data.get('is_completed')
        # self.instance still holds the stored state here
        if self.instance.pk and self.instance.is_completed and not value:
            raise forms.ValidationError('A completed attendance session cannot be reopened')
        return value
