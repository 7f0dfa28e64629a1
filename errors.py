# errors.py
"""
Exception taxonomy shared by the store, the delegates and the routes.
Every error carries the HTTP status the API answers with.
"""


class AttendanceError(Exception):
    status_code = 400

    def __init__(self, msg=None, status_code=None):
        super().__init__(msg or self.__class__.__doc__ or self.__class__.__name__)
        self.msg = str(self)
        if status_code is not None:
            self.status_code = status_code


class DelegateUnavailable(AttendanceError):
    """The AI service could not be reached."""
    status_code = 502


class DelegateTimeout(DelegateUnavailable):
    """The AI service did not answer in time."""
    status_code = 504


class MalformedDelegateResponse(AttendanceError):
    """The AI service returned an unexpected response."""
    status_code = 502


class WriteRejected(AttendanceError):
    """The roster store rejected an update."""
    status_code = 500

    def __init__(self, student_id, msg=None):
        super().__init__(msg)
        self.student_id = student_id


class DuplicateRollNumber(AttendanceError):
    """A student with this roll number is already in the class."""
    status_code = 409


class DuplicateEnrollment(AttendanceError):
    """You are already enrolled in this class."""
    status_code = 409


class ClassNotFound(AttendanceError):
    """No class found with that code."""
    status_code = 404


class StudentNotFound(AttendanceError):
    """Student not found in this class."""
    status_code = 404


class InvalidAttendanceDate(AttendanceError):
    """Invalid attendance date."""


class InvalidImage(AttendanceError):
    """Invalid image."""


class InvalidInvite(AttendanceError):
    """Invalid or expired invite."""


class NotAuthorized(AttendanceError):
    """Unauthorized"""
    status_code = 403
