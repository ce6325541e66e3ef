from django.urls import path
from . import views

app_name = 'academics'

urlpatterns = [
    path('me/', views.me, name='me'),
    path('classes/<int:class_id>/timetable/', views.class_timetable, name='class_timetable'),
    path('classes/<int:class_id>/lectures/today/', views.today_lectures, name='today_lectures'),
    path('classes/<int:class_id>/attendance/summary/', views.class_attendance_summary, name='class_attendance_summary'),
    path(
        'classes/<int:class_id>/attendance/students/<int:student_id>/summary/',
        views.student_attendance_summary,
        name='student_attendance_summary',
    ),
    path('classes/<int:class_id>/attendance/export/', views.attendance_export, name='attendance_export'),
    path('classes/<int:class_id>/attendance/mine/', views.my_attendance, name='my_attendance'),
    path('timetable/mine/', views.my_timetable, name='my_timetable'),
    path('timetable/stats/', views.my_timetable_stats, name='my_timetable_stats'),
    path('timetable/<int:entry_id>/', views.timetable_entry_detail, name='timetable_entry_detail'),
    path('timetable/<int:entry_id>/deactivate/', views.timetable_entry_deactivate, name='timetable_entry_deactivate'),
    path('attendance/start/', views.attendance_start, name='attendance_start'),
    path('attendance/overview/', views.attendance_overview, name='attendance_overview'),
    path('attendance/<int:session_id>/', views.attendance_detail, name='attendance_detail'),
    path('attendance/<int:session_id>/mark/', views.attendance_mark, name='attendance_mark'),
    path('attendance/<int:session_id>/complete/', views.attendance_complete, name='attendance_complete'),
]
