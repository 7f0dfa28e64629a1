import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from errors import WriteRejected
from models.class_model import ClassRecord
from models.roster_store import RosterStore, RosterSubscription
from models.student_model import StudentRecord, sort_roster
from models.user_model import UserProfile

logger = logging.getLogger(__name__)


def init_firebase(credentials_path):
    """
    Initialize the default Firebase app from a service-account JSON file.
    Returns the app, or None when the file is missing (Google sign-in and
    Firestore are then disabled).
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if not credentials_path or not os.path.exists(credentials_path):
        logger.warning("Firebase JSON not found at '%s'. Firestore and Google sign-in are disabled.",
                       credentials_path)
        return None

    cred = credentials.Certificate(credentials_path)
    app = firebase_admin.initialize_app(cred)
    logger.info("Firebase admin initialized using %s", credentials_path)
    return app


class FirestoreRosterStore(RosterStore):

    def __init__(self, firebase_app=None):
        self.db = firestore.client(firebase_app)

    def _classes(self):
        return self.db.collection("classes")

    def _students(self, class_id):
        return self._classes().document(class_id).collection("students")

    # -------------------- Classes --------------------
    def create_class(self, class_name, class_code, faculty_id):
        ref = self._classes().document()
        record = ClassRecord(id=ref.id, class_name=class_name, class_code=class_code, faculty_id=faculty_id)
        ref.set(record.to_dict())
        return record

    def find_class_by_code(self, class_code):
        for snap in self._classes().where("classCode", "==", class_code).limit(1).stream():
            return ClassRecord.from_dict(snap.id, snap.to_dict())
        return None

    def list_classes_for_faculty(self, faculty_id):
        records = [ClassRecord.from_dict(snap.id, snap.to_dict())
                   for snap in self._classes().where("facultyId", "==", faculty_id).stream()]
        return sorted(records, key=lambda c: c.class_name.lower())

    # -------------------- Students --------------------
    def find_students_by_class(self, class_id):
        return sort_roster(StudentRecord.from_dict(snap.id, snap.to_dict())
                           for snap in self._students(class_id).stream())

    def get_student(self, class_id, student_id):
        snap = self._students(class_id).document(student_id).get()
        return StudentRecord.from_dict(snap.id, snap.to_dict()) if snap.exists else None

    def _find_one(self, class_id, field, value):
        for snap in self._students(class_id).where(field, "==", value).limit(1).stream():
            return StudentRecord.from_dict(snap.id, snap.to_dict())
        return None

    def find_student_by_roll_number(self, class_id, roll_number):
        return self._find_one(class_id, "rollNumber", roll_number)

    def find_student_by_uid(self, class_id, uid):
        return self._find_one(class_id, "uid", uid)

    def add_student(self, class_id, name, roll_number, uid=None, profile_photo_url=None):
        ref = self._students(class_id).document()
        record = StudentRecord(id=ref.id, name=name, roll_number=roll_number,
                               uid=uid, profile_photo_url=profile_photo_url)
        ref.set(record.to_dict())
        return record

    def _update(self, class_id, student_id, fields):
        try:
            self._students(class_id).document(student_id).update(fields)
        except google_exceptions.GoogleAPICallError as e:
            raise WriteRejected(student_id, f"Firestore rejected update: {e}") from e

    def append_attendance_date(self, class_id, student_id, date_str):
        ref = self._students(class_id).document(student_id)

        @firestore.transactional
        def union(transaction):
            snap = ref.get(transaction=transaction)
            if not snap.exists:
                raise WriteRejected(student_id, f"No student document {student_id}")
            if date_str in ((snap.to_dict() or {}).get("attendanceHistory") or []):
                return False
            transaction.update(ref, {"attendanceHistory": firestore.ArrayUnion([date_str])})
            return True

        try:
            return union(self.db.transaction())
        except google_exceptions.GoogleAPICallError as e:
            raise WriteRejected(student_id, f"Firestore rejected update: {e}") from e

    def set_profile_photo(self, class_id, student_id, photo_url):
        self._update(class_id, student_id, {"profilePhotoUrl": photo_url})

    def find_enrollments_by_uid(self, uid):
        enrollments = []
        for snap in self.db.collection_group("students").where("uid", "==", uid).stream():
            class_snap = snap.reference.parent.parent.get()
            if not class_snap.exists:
                continue
            enrollments.append((
                ClassRecord.from_dict(class_snap.id, class_snap.to_dict()),
                StudentRecord.from_dict(snap.id, snap.to_dict()),
            ))
        return enrollments

    def subscribe_roster(self, class_id, callback):
        def on_snapshot(col_snapshot, changes, read_time):
            roster = sort_roster(StudentRecord.from_dict(snap.id, snap.to_dict()) for snap in col_snapshot)
            try:
                callback(roster)
            except Exception:
                logger.exception("Roster listener for class %s failed", class_id)

        watch = self._students(class_id).on_snapshot(on_snapshot)
        return RosterSubscription(class_id, watch.unsubscribe)

    # -------------------- Users --------------------
    def get_user(self, uid):
        snap = self.db.collection("users").document(uid).get()
        return UserProfile.from_dict(uid, snap.to_dict()) if snap.exists else None

    def save_user(self, profile):
        self.db.collection("users").document(profile.uid).set(profile.to_dict())
        return profile
