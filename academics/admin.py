from django.contrib import admin
from django.utils import timezone

from .forms import AttendanceSessionAdminForm, TimetableEntryAdminForm
from .models import AttendanceRecord, AttendanceSession, SchoolClass, TimetableEntry
from .stats import AGGREGATE_FIELDS, apply_aggregates


@admin.register(SchoolClass)
class SchoolClassAdmin(admin.ModelAdmin):
    list_display = ("name", "teacher", "created_at")
    search_fields = ("name", "teacher__username", "teacher__first_name", "teacher__last_name")
    filter_horizontal = ("teachers", "students")


@admin.register(TimetableEntry)
class TimetableEntryAdmin(admin.ModelAdmin):
    form = TimetableEntryAdminForm
    list_display = ("school_class", "day", "time", "subject", "teacher", "room", "is_active")
    list_filter = ("is_active", "day", "school_class")
    search_fields = ("subject", "room", "teacher__username", "teacher__last_name")
    readonly_fields = ("created_by", "version", "created_at", "updated_at")

    def save_model(self, request, obj, form, change):
        if change:
            obj.version += 1
        else:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


class AttendanceRecordInline(admin.TabularInline):
    model = AttendanceRecord
    extra = 0
    fields = ("student", "status", "marked_at", "notes")
    raw_id_fields = ("student",)


@admin.register(AttendanceSession)
class AttendanceSessionAdmin(admin.ModelAdmin):
    form = AttendanceSessionAdminForm
    list_display = (
        "date", "school_class", "subject", "time_slot", "teacher",
        "present_count", "absent_count", "late_count", "attendance_percentage", "is_completed",
    )
    list_filter = ("is_completed", "school_class", "date")
    search_fields = ("subject", "school_class__name", "teacher__username", "teacher__last_name")
    date_hierarchy = "date"
    inlines = [AttendanceRecordInline]
    readonly_fields = tuple(AGGREGATE_FIELDS) + ("completed_at", "version", "created_at", "updated_at")

    def save_model(self, request, obj, form, change):
        # Stamped on the first completion only; reopening is refused by the form
        if obj.is_completed and obj.completed_at is None:
            obj.completed_at = timezone.now()
        super().save_model(request, obj, form, change)

    def save_related(self, request, form, formsets, change):
        # Counts follow the records edited in the inline
        super().save_related(request, form, formsets, change)
        session = form.instance
        apply_aggregates(session)
        session.version += 1
        session.save(update_fields=AGGREGATE_FIELDS + ["version", "updated_at"])
