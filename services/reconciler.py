"""
Attendance reconciler.

Turns one marking action into idempotent date-stamped writes:

1. keep only students that have a reference photo;
2. ask the recognition delegate who is present (one call, bounded by a
   timeout, never retried);
3. split the roster into present/absent, keeping roster order;
4. union-append the date for every present student that lacks it, one
   independent write per student, fanned out on a thread pool.

A delegate failure aborts before any write. A failed write only affects
its own student and is reported in MarkResult.failures.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from errors import MalformedDelegateResponse, WriteRejected
from models.attendance_model import MarkResult, WriteFailure
from models.session_model import AttendanceMarkSession
from services.delegates import RecognitionRequest, StudentProfile, call_with_timeout
from utils.date_utils import validate_attendance_date
from utils.image_utils import validate_photo

logger = logging.getLogger(__name__)


def parse_recognition_response(response, eligible_roll_numbers):
    """
    Extract (present roll numbers, total faces, boxes) from a delegate
    response. Anything unexpected degrades to "no one recognized"; roll
    numbers that were not in the request are dropped.
    """
    if not isinstance(response, dict):
        return set(), 0, {}

    total_faces = response.get("totalFacesDetected")
    if not isinstance(total_faces, int) or isinstance(total_faces, bool) or total_faces < 0:
        total_faces = 0

    entries = response.get("presentStudents")
    if not isinstance(entries, list):
        return set(), total_faces, {}

    present, boxes = set(), {}
    for entry in entries:
        box = None
        if isinstance(entry, dict):
            roll_number, box = entry.get("rollNumber"), entry.get("box")
        else:
            roll_number = entry
        if not isinstance(roll_number, (str, int)) or isinstance(roll_number, bool):
            continue
        roll_number = str(roll_number)
        if roll_number not in eligible_roll_numbers:
            logger.debug("Ignoring unknown roll number %r from recognition", roll_number)
            continue
        present.add(roll_number)
        if isinstance(box, dict):
            boxes[roll_number] = box
    return present, total_faces, boxes


class AttendanceReconciler:

    def __init__(self, store, delegate, delegate_timeout=30.0, write_workers=8,
                 min_date="2020-01-01", allow_future=False):
        self.store = store
        self.delegate = delegate
        self.delegate_timeout = delegate_timeout
        self.min_date = min_date
        self.allow_future = allow_future
        self._delegate_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="delegate")
        self._write_pool = ThreadPoolExecutor(max_workers=write_workers, thread_name_prefix="roster-write")

    def shutdown(self):
        self._delegate_pool.shutdown(wait=False)
        self._write_pool.shutdown(wait=True)

    def _check_date(self, target_date):
        return validate_attendance_date(target_date, self.min_date, self.allow_future)

    def mark_attendance(self, class_id, target_date, photo, roster):
        date_str = self._check_date(target_date)
        validate_photo(photo)
        session = AttendanceMarkSession(class_id=class_id, target_date=date_str, captured_photo=photo)

        with_photo = [s for s in roster if s.has_photo]
        if not with_photo:
            logger.info("Class %s: no student has a reference photo, skipping recognition", class_id)
            session.partition(roster, set())
            return MarkResult(date=date_str, present=session.present_students,
                              absent=session.absent_students)

        request = RecognitionRequest(
            class_photo=photo,
            student_profiles=[StudentProfile(s.roll_number, s.profile_photo_url) for s in with_photo],
        )
        try:
            response = call_with_timeout(self._delegate_pool, self.delegate_timeout,
                                         self.delegate.recognize, request)
        except MalformedDelegateResponse as e:
            logger.warning("Class %s: malformed recognition response (%s), treating as no one present",
                           class_id, e)
            response = {}

        eligible = {s.roll_number for s in with_photo}
        present_rolls, total_faces, boxes = parse_recognition_response(response, eligible)
        session.partition(roster, present_rolls)
        logger.info("Class %s %s: recognized %d of %d eligible students (%d faces)",
                    class_id, date_str, len(session.present_students), len(with_photo), total_faces)

        marked, failures = self._write_present(class_id, date_str, session.present_students)
        return MarkResult(
            date=date_str,
            present=session.present_students,
            absent=session.absent_students,
            marked_count=marked,
            failures=failures,
            total_faces_detected=total_faces,
            boxes=boxes,
        )

    def mark_manual(self, class_id, target_date, student_ids, roster):
        """Checkbox marking: the given student ids are present, the rest absent."""
        date_str = self._check_date(target_date)
        selected = set(student_ids or [])
        present = [s for s in roster if s.id in selected]
        absent = [s for s in roster if s.id not in selected]

        marked, failures = self._write_present(class_id, date_str, present)
        logger.info("Class %s %s: manual marking, %d present, %d newly marked",
                    class_id, date_str, len(present), marked)
        return MarkResult(date=date_str, present=present, absent=absent,
                          marked_count=marked, failures=failures)

    def count_faces(self, photo):
        validate_photo(photo)
        response = call_with_timeout(self._delegate_pool, self.delegate_timeout,
                                     self.delegate.count_faces, photo)
        count = response.get("faceCount") if isinstance(response, dict) else None
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise MalformedDelegateResponse("AI service did not return a face count")
        return count

    def _write_present(self, class_id, date_str, present):
        pending = [s for s in present if not s.has_attended(date_str)]
        if not pending:
            return 0, []

        futures = {
            self._write_pool.submit(self.store.append_attendance_date, class_id, s.id, date_str): s
            for s in pending
        }
        marked, failures = 0, []
        for future in as_completed(futures):
            student = futures[future]
            try:
                if future.result():
                    marked += 1
            except WriteRejected as e:
                failures.append(WriteFailure(student.id, student.roll_number, e.msg))
            except Exception as e:
                logger.exception("Class %s: attendance write for %s failed", class_id, student.id)
                failures.append(WriteFailure(student.id, student.roll_number, str(e)))

        if failures:
            logger.warning("Class %s %s: %d of %d attendance writes failed",
                           class_id, date_str, len(failures), len(pending))
        # as_completed yields in completion order
        order = {s.id: i for i, s in enumerate(pending)}
        failures.sort(key=lambda f: order[f.student_id])
        return marked, failures
