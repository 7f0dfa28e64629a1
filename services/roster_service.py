import logging

from errors import (AttendanceError, ClassNotFound, DuplicateEnrollment,
                    DuplicateRollNumber, StudentNotFound)
from models.class_model import generate_class_code
from utils.image_utils import normalize_profile_photo

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


class RosterService:
    """
    Class creation and enrollment. Roll-number and enrollment uniqueness are
    checked with a query before the insert; two concurrent enrollments with
    the same roll number can both pass the check.
    """

    def __init__(self, store, profile_photo_max_px=512):
        self.store = store
        self.profile_photo_max_px = profile_photo_max_px

    # -------------------- Classes --------------------
    def create_class(self, faculty_id, class_name):
        class_name = (class_name or "").strip()
        if len(class_name) < 3:
            raise AttendanceError("Class name must be at least 3 characters.")

        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_class_code()
            if self.store.find_class_by_code(code) is None:
                break
        else:
            raise AttendanceError("Could not allocate a unique class code, try again", status_code=503)

        record = self.store.create_class(class_name, code, faculty_id)
        logger.info("Class created: %s (%s) by %s", record.class_name, record.class_code, faculty_id)
        return record

    def get_class_by_code(self, class_code):
        record = self.store.find_class_by_code((class_code or "").strip().upper())
        if record is None:
            raise ClassNotFound()
        return record

    def roster(self, class_record):
        return self.store.find_students_by_class(class_record.id)

    def get_student(self, class_record, student_id):
        student = self.store.get_student(class_record.id, student_id)
        if student is None:
            raise StudentNotFound()
        return student

    # -------------------- Enrollment --------------------
    def add_student(self, class_record, name, roll_number, uid=None, profile_photo=None):
        name = (name or "").strip()
        roll_number = str(roll_number or "").strip()
        if len(name) < 2:
            raise AttendanceError("Name is required.")
        if not roll_number:
            raise AttendanceError("Roll number is required.")

        photo_url = normalize_profile_photo(profile_photo, self.profile_photo_max_px) if profile_photo else None

        if uid and self.store.find_student_by_uid(class_record.id, uid):
            raise DuplicateEnrollment()
        if self.store.find_student_by_roll_number(class_record.id, roll_number):
            raise DuplicateRollNumber()

        student = self.store.add_student(class_record.id, name, roll_number, uid=uid, profile_photo_url=photo_url)
        logger.info("Student %s (%s) enrolled in %s", student.name, student.roll_number, class_record.class_code)
        return student

    def set_profile_photo(self, class_record, student, photo):
        photo_url = normalize_profile_photo(photo, self.profile_photo_max_px)
        self.store.set_profile_photo(class_record.id, student.id, photo_url)
        logger.info("Profile photo updated for %s in %s", student.roll_number, class_record.class_code)
        return photo_url

    def student_enrollments(self, uid):
        enrollments = self.store.find_enrollments_by_uid(uid)
        return sorted(enrollments, key=lambda pair: pair[0].class_name.lower())


def history_records(roster):
    """Flattened (date, name, rollNumber) attendance records, newest first."""
    records = [
        {"date": day, "name": s.name, "rollNumber": s.roll_number}
        for s in roster
        for day in s.attendance_history
    ]
    records.sort(key=lambda r: r["date"], reverse=True)
    return records
