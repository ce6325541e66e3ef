"""Error taxonomy for timetable and attendance writes.

Every service in this app raises one of these synchronously; none of them is
retried. The HTTP layer only needs ``code`` and ``status_code`` to build the
response, so the classification made here is the contract the views rely on.
"""


class AcademicsError(Exception):
    """Base exception for all timetable/attendance failures."""

    code = "server_error"
    status_code = 500

    def __init__(self, message="", **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def as_dict(self):
        data = {"success": False, "error": self.message, "category": self.code}
        data.update({k: v for k, v in self.context.items() if v is not None})
        return data


class ValidationError(AcademicsError):
    """Malformed input.

    Examples: bad time format, unknown weekday, subject not offered by the
    class, student not on the roster.
    """

    code = "validation"
    status_code = 400


class ConflictError(AcademicsError):
    """The write collides with existing state (occupied slot, duplicate session)."""

    code = "conflict"
    status_code = 409


class StaleWriteError(ConflictError):
    """The caller's version of the entity is no longer current."""

    code = "stale"


class AccessError(AcademicsError):
    """Teacher is not authorized for the class or session."""

    code = "access"
    status_code = 403


class NotFoundError(AcademicsError):
    """Entity missing by id."""

    code = "not_found"
    status_code = 404
