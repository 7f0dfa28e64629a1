"""
Roster store interface.

A store holds the ``classes`` collection, a ``students`` sub-collection per
class and a ``users`` collection of sign-in profiles. Attendance is only
ever written through ``append_attendance_date``, a set-union insert, so
concurrent marking sessions converge to the same history.
"""
import logging
import threading
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class RosterSubscription:
    """Handle returned by ``subscribe_roster``; use as a context manager or call unsubscribe()."""

    def __init__(self, class_id, unsubscribe_fn):
        self.class_id = class_id
        self._unsubscribe_fn = unsubscribe_fn
        self._lock = threading.Lock()
        self.active = True

    def unsubscribe(self):
        with self._lock:
            if not self.active:
                return
            self.active = False
        self._unsubscribe_fn()
        logger.debug("Roster subscription for class %s closed", self.class_id)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()


class RosterStore(ABC):

    # -------------------- Classes --------------------
    @abstractmethod
    def create_class(self, class_name, class_code, faculty_id):
        """Persist a new class and return its ClassRecord."""

    @abstractmethod
    def find_class_by_code(self, class_code):
        """ClassRecord or None."""

    @abstractmethod
    def list_classes_for_faculty(self, faculty_id):
        """ClassRecords owned by faculty_id, sorted by name."""

    # -------------------- Students --------------------
    @abstractmethod
    def find_students_by_class(self, class_id):
        """Roster of the class, sorted numerically by roll number."""

    @abstractmethod
    def get_student(self, class_id, student_id):
        """StudentRecord or None."""

    @abstractmethod
    def find_student_by_roll_number(self, class_id, roll_number):
        """StudentRecord or None."""

    @abstractmethod
    def find_student_by_uid(self, class_id, uid):
        """StudentRecord or None."""

    @abstractmethod
    def add_student(self, class_id, name, roll_number, uid=None, profile_photo_url=None):
        """Insert a student with an empty history; no uniqueness check here."""

    @abstractmethod
    def append_attendance_date(self, class_id, student_id, date_str):
        """
        Union-append date_str into the student's history. Returns True when
        the history changed, False when the date was already there. Raises
        WriteRejected.
        """

    @abstractmethod
    def set_profile_photo(self, class_id, student_id, photo_url):
        """Replace the student's reference photo. Raises WriteRejected."""

    @abstractmethod
    def find_enrollments_by_uid(self, uid):
        """List of (ClassRecord, StudentRecord) for every class the user joined."""

    @abstractmethod
    def subscribe_roster(self, class_id, callback):
        """
        Call ``callback(roster)`` with the sorted roster now and after every
        change. Returns a RosterSubscription.
        """

    # -------------------- Users --------------------
    @abstractmethod
    def get_user(self, uid):
        """UserProfile or None."""

    @abstractmethod
    def save_user(self, profile):
        """Create or overwrite a UserProfile."""
