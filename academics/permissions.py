ADMIN = 'admin'
TEACHER = 'teacher'
STUDENT = 'student'

# Feature keys used to gate views
FEATURES = {
    'manage_timetable',
    'take_attendance',
    'view_reports',
    'view_own_attendance',
}

ROLE_FEATURES = {
    ADMIN: FEATURES,
    TEACHER: {'manage_timetable', 'take_attendance', 'view_reports'},
    STUDENT: {'view_own_attendance'},
}


def _in_group(user, name: str) -> bool:
    return user.groups.filter(name=name).exists()


def is_admin(user) -> bool:
    if not getattr(user, 'is_authenticated', False):
        return False
    if getattr(user, 'is_superuser', False) or getattr(user, 'is_staff', False):
        return True
    return _in_group(user, 'Admin')


def role_for(user):
    if not getattr(user, 'is_authenticated', False):
        return None
    if is_admin(user):
        return ADMIN
    if _in_group(user, 'Teacher'):
        return TEACHER
    if _in_group(user, 'Student'):
        return STUDENT
    return None


def has_feature(user, feature: str) -> bool:
    role = role_for(user)
    if role is None:
        return False
    return feature in ROLE_FEATURES[role]


def caps_for(user):
    return {key: has_feature(user, key) for key in FEATURES}
