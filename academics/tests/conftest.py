import pytest
from django.contrib.auth.models import Group

from academics.models import SchoolClass
from academics.timetable import create_timetable_entry


def _user(django_user_model, username, group=None, **extra):
    user = django_user_model.objects.create_user(
        username=username, password="pass", email=f"{username}@example.com", **extra
    )
    if group:
        user.groups.add(Group.objects.get_or_create(name=group)[0])
    return user


@pytest.fixture
def teacher(django_user_model):
    return _user(django_user_model, "mwest", "Teacher", first_name="Mara", last_name="West")


@pytest.fixture
def other_teacher(django_user_model):
    return _user(django_user_model, "jdoe", "Teacher", first_name="John", last_name="Doe")


@pytest.fixture
def admin_user(django_user_model):
    return _user(django_user_model, "root", is_superuser=True, is_staff=True)


@pytest.fixture
def students(django_user_model):
    return [
        _user(django_user_model, "abel", "Student", first_name="Ana", last_name="Abel"),
        _user(django_user_model, "brown", "Student", first_name="Ben", last_name="Brown"),
        _user(django_user_model, "cruz", "Student", first_name="Cleo", last_name="Cruz"),
    ]


@pytest.fixture
def school_class(teacher, students):
    cls = SchoolClass.objects.create(name="10-A", teacher=teacher, subjects=["Math", "Physics"])
    cls.students.add(*students)
    return cls


@pytest.fixture
def entry(school_class, teacher):
    return create_timetable_entry(
        school_class, teacher=teacher, subject="Math", room="R101",
        day="Monday", time="09:00 - 10:30", created_by=teacher,
    )
