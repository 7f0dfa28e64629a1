import copy
import itertools
import logging
import threading

from errors import WriteRejected
from models.class_model import ClassRecord
from models.roster_store import RosterStore, RosterSubscription
from models.student_model import StudentRecord, sort_roster
from models.user_model import UserProfile

logger = logging.getLogger(__name__)


class MemoryRosterStore(RosterStore):
    """
    In-process store used when no Firebase credentials are configured and
    in tests. Documents are kept as plain dicts, the way Firestore returns
    them, and every read hands out fresh records.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self.classes = {}    # class_id -> dict
        self.students = {}   # class_id -> {student_id -> dict}
        self.users = {}      # uid -> dict
        self._listeners = {}  # class_id -> {token -> callback}

    def _new_id(self, prefix):
        return f"{prefix}{next(self._ids)}"

    # -------------------- Classes --------------------
    def create_class(self, class_name, class_code, faculty_id):
        record = ClassRecord(id=self._new_id("class"), class_name=class_name,
                             class_code=class_code, faculty_id=faculty_id)
        with self._lock:
            self.classes[record.id] = record.to_dict()
            self.students[record.id] = {}
        return record

    def find_class_by_code(self, class_code):
        with self._lock:
            for class_id, data in self.classes.items():
                if data["classCode"] == class_code:
                    return ClassRecord.from_dict(class_id, data)
        return None

    def list_classes_for_faculty(self, faculty_id):
        with self._lock:
            records = [ClassRecord.from_dict(cid, d) for cid, d in self.classes.items()
                       if d["facultyId"] == faculty_id]
        return sorted(records, key=lambda c: c.class_name.lower())

    # -------------------- Students --------------------
    def _snapshot(self, class_id):
        docs = self.students.get(class_id, {})
        return sort_roster(StudentRecord.from_dict(sid, copy.deepcopy(d)) for sid, d in docs.items())

    def find_students_by_class(self, class_id):
        with self._lock:
            return self._snapshot(class_id)

    def get_student(self, class_id, student_id):
        with self._lock:
            data = self.students.get(class_id, {}).get(student_id)
            return StudentRecord.from_dict(student_id, copy.deepcopy(data)) if data else None

    def find_student_by_roll_number(self, class_id, roll_number):
        for student in self.find_students_by_class(class_id):
            if student.roll_number == roll_number:
                return student
        return None

    def find_student_by_uid(self, class_id, uid):
        for student in self.find_students_by_class(class_id):
            if student.uid == uid:
                return student
        return None

    def add_student(self, class_id, name, roll_number, uid=None, profile_photo_url=None):
        record = StudentRecord(id=self._new_id("student"), name=name, roll_number=roll_number,
                               uid=uid, profile_photo_url=profile_photo_url)
        with self._lock:
            self.students.setdefault(class_id, {})[record.id] = record.to_dict()
        self._notify(class_id)
        return record

    def _update(self, class_id, student_id, mutate):
        with self._lock:
            doc = self.students.get(class_id, {}).get(student_id)
            if doc is None:
                raise WriteRejected(student_id, f"No student document {student_id}")
            changed = mutate(doc)
        if changed:
            self._notify(class_id)
        return changed

    def append_attendance_date(self, class_id, student_id, date_str):
        def union(doc):
            history = doc.setdefault("attendanceHistory", [])
            if date_str in history:
                return False
            history.append(date_str)
            return True
        return self._update(class_id, student_id, union)

    def set_profile_photo(self, class_id, student_id, photo_url):
        def replace(doc):
            doc["profilePhotoUrl"] = photo_url
            return True
        self._update(class_id, student_id, replace)

    def find_enrollments_by_uid(self, uid):
        enrollments = []
        with self._lock:
            for class_id, docs in self.students.items():
                for student_id, data in docs.items():
                    if data.get("uid") == uid:
                        enrollments.append((
                            ClassRecord.from_dict(class_id, self.classes[class_id]),
                            StudentRecord.from_dict(student_id, copy.deepcopy(data)),
                        ))
        return enrollments

    def subscribe_roster(self, class_id, callback):
        token = object()
        with self._lock:
            self._listeners.setdefault(class_id, {})[token] = callback
            roster = self._snapshot(class_id)
        callback(roster)

        def unsubscribe():
            with self._lock:
                self._listeners.get(class_id, {}).pop(token, None)
        return RosterSubscription(class_id, unsubscribe)

    def _notify(self, class_id):
        with self._lock:
            callbacks = list(self._listeners.get(class_id, {}).values())
            roster = self._snapshot(class_id) if callbacks else None
        for callback in callbacks:
            try:
                callback(list(roster))
            except Exception:
                logger.exception("Roster listener for class %s failed", class_id)

    # -------------------- Users --------------------
    def get_user(self, uid):
        with self._lock:
            data = self.users.get(uid)
            return UserProfile.from_dict(uid, data) if data else None

    def save_user(self, profile):
        with self._lock:
            self.users[profile.uid] = profile.to_dict()
        return profile
