from django.core.validators import RegexValidator
from django.db import models
from django.conf import settings
from django.utils import timezone

from .timeslots import DAY_CHOICES, TIME_RANGE_RE

# Shared status choices for per-student attendance
PRESENT = 'present'
ABSENT = 'absent'
LATE = 'late'
STATUS_CHOICES = (
    (PRESENT, 'Present'),
    (ABSENT, 'Absent'),
    (LATE, 'Late'),
)
ATTENDED_SET = {PRESENT, LATE}  # Late counts as attended


class SchoolClass(models.Model):
    name = models.CharField(max_length=100, unique=True)
    # Legacy single-teacher field; authorization checks accept either this or `teachers`
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='primary_classes',
    )
    teachers = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name='teaching_classes')
    students = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name='enrolled_classes')
    subjects = models.JSONField(default=list, blank=True, help_text="Subject names offered; empty means any")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'classes'

    def __str__(self):
        return self.name

    def has_teacher(self, user) -> bool:
        if user is None:
            return False
        uid = getattr(user, 'pk', user)
        if self.teacher_id is not None and self.teacher_id == uid:
            return True
        return self.teachers.filter(pk=uid).exists()

    def has_student(self, user) -> bool:
        uid = getattr(user, 'pk', user)
        return self.students.filter(pk=uid).exists()


class TimetableEntry(models.Model):
    subject = models.CharField(max_length=100)
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='timetable_entries')
    school_class = models.ForeignKey(SchoolClass, on_delete=models.CASCADE, related_name='timetable_entries')
    room = models.CharField(max_length=50)
    day = models.CharField(max_length=9, choices=DAY_CHOICES)
    time = models.CharField(
        max_length=13, help_text='e.g., 09:00 - 10:30',
        validators=[RegexValidator(TIME_RANGE_RE.pattern, 'Time must be in format "HH:MM - HH:MM"')],
    )
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='created_timetable_entries',
    )
    notes = models.CharField(max_length=500, blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['school_class', 'day', 'time']
        verbose_name_plural = 'timetable entries'
        constraints = [
            # Deactivated entries are history and may collide
            models.UniqueConstraint(
                fields=['school_class', 'day', 'time'],
                condition=models.Q(is_active=True),
                name='uniq_active_class_day_time',
            ),
        ]
        indexes = [
            models.Index(fields=['teacher', 'is_active'], name='idx_tt_teacher_active'),
            models.Index(fields=['school_class', 'is_active'], name='idx_tt_class_active'),
        ]

    def __str__(self):
        return f"{self.subject} - {self.room} ({self.day} {self.time})"

    @property
    def time_start(self):
        return self.time.split(' - ')[0]

    @property
    def time_end(self):
        return self.time.split(' - ')[1]


class AttendanceSession(models.Model):
    school_class = models.ForeignKey(SchoolClass, on_delete=models.CASCADE, related_name='attendance_sessions')
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='attendance_sessions')
    subject = models.CharField(max_length=100)
    date = models.DateField()
    time_slot = models.CharField(max_length=13)
    room = models.CharField(max_length=50, blank=True)
    timetable_entry = models.ForeignKey(
        TimetableEntry, on_delete=models.SET_NULL, null=True, blank=True, related_name='attendance_sessions',
    )
    # Derived from records; only written by stats.apply_aggregates
    total_students = models.PositiveIntegerField(default=0)
    present_count = models.PositiveIntegerField(default=0)
    absent_count = models.PositiveIntegerField(default=0)
    late_count = models.PositiveIntegerField(default=0)
    attendance_percentage = models.PositiveSmallIntegerField(default=0)
    is_completed = models.BooleanField(default=False)
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=500, blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date', 'time_slot']
        constraints = [
            models.UniqueConstraint(
                fields=['school_class', 'subject', 'time_slot', 'date'],
                name='uniq_session_per_lecture',
            ),
        ]
        indexes = [
            models.Index(fields=['school_class', '-date'], name='idx_as_class_date'),
            models.Index(fields=['teacher', '-date'], name='idx_as_teacher_date'),
        ]

    def __str__(self):
        return f"{self.school_class} {self.subject} {self.date} {self.time_slot}"

    @property
    def status(self):
        if self.is_completed:
            return 'completed'
        if self.total_students > 0:
            return 'in-progress'
        return 'not-started'


class AttendanceRecord(models.Model):
    session = models.ForeignKey(AttendanceSession, on_delete=models.CASCADE, related_name='records')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='attendance_records')
    status = models.CharField(max_length=7, choices=STATUS_CHOICES, default=ABSENT)
    marked_at = models.DateTimeField(default=timezone.now)
    notes = models.CharField(max_length=200, blank=True)

    class Meta:
        unique_together = ('session', 'student')
        # Insertion order is the roster order of the session
        ordering = ['id']
        indexes = [
            models.Index(fields=['student'], name='idx_ar_student'),
        ]

    def __str__(self):
        return f"{self.student} - {self.session}: {self.get_status_display()}"
