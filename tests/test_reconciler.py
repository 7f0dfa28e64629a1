from datetime import date, timedelta

import pytest

from errors import (DelegateTimeout, DelegateUnavailable, InvalidAttendanceDate,
                    InvalidImage, MalformedDelegateResponse, WriteRejected)
from models.memory_store import MemoryRosterStore
from services.reconciler import AttendanceReconciler, parse_recognition_response

DAY = "2024-01-15"


def rolls(students):
    return [s.roll_number for s in students]


def test_recognized_students_are_marked_present(store, delegate, reconciler, classroom, photo):
    delegate.present("110", "101")
    roster = store.find_students_by_class(classroom.id)

    result = reconciler.mark_attendance(classroom.id, DAY, photo, roster)

    assert rolls(result.present) == ["101", "110"]
    assert rolls(result.absent) == ["102", "103"]
    assert result.marked_count == 2
    assert result.failures == []
    assert result.total_faces_detected == 2
    assert set(result.boxes) == {"101", "110"}
    history = {s.roll_number: s.attendance_history for s in store.find_students_by_class(classroom.id)}
    assert history == {"101": [DAY], "102": [], "103": [], "110": [DAY]}


def test_only_students_with_photos_are_sent(store, delegate, reconciler, classroom, photo):
    roster = store.find_students_by_class(classroom.id)
    reconciler.mark_attendance(classroom.id, DAY, photo, roster)

    request = delegate.calls["recognize"][0]
    assert request.class_photo == photo
    assert [p.roll_number for p in request.student_profiles] == ["101", "102", "110"]


def test_student_without_photo_never_present(store, delegate, reconciler, classroom, photo):
    delegate.present("101", "103")
    roster = store.find_students_by_class(classroom.id)

    result = reconciler.mark_attendance(classroom.id, DAY, photo, roster)

    assert rolls(result.present) == ["101"]
    assert "103" in rolls(result.absent)
    assert store.find_student_by_roll_number(classroom.id, "103").attendance_history == []


def test_no_photos_skips_delegate(store, delegate, reconciler, photo):
    class_record = store.create_class("Physics", "PH1234", "f1")
    store.add_student(class_record.id, "A", "1")
    store.add_student(class_record.id, "B", "2")
    roster = store.find_students_by_class(class_record.id)

    result = reconciler.mark_attendance(class_record.id, DAY, photo, roster)

    assert result.present == []
    assert rolls(result.absent) == ["1", "2"]
    assert result.marked_count == 0
    assert len(delegate.calls["recognize"]) == 0


@pytest.mark.parametrize("response", [
    {},
    {"presentStudents": None},
    {"presentStudents": "101"},
    {"presentStudents": {"rollNumber": "101"}},
    None,
])
def test_malformed_response_means_nobody_present(store, delegate, reconciler, classroom, photo, response):
    delegate.recognition_response = response
    roster = store.find_students_by_class(classroom.id)

    result = reconciler.mark_attendance(classroom.id, DAY, photo, roster)

    assert result.present == []
    assert rolls(result.absent) == rolls(roster)
    assert result.marked_count == 0


def test_malformed_error_from_delegate_degrades(store, delegate, reconciler, classroom, photo):
    delegate.error = MalformedDelegateResponse("not json")
    roster = store.find_students_by_class(classroom.id)

    result = reconciler.mark_attendance(classroom.id, DAY, photo, roster)

    assert result.present == []
    assert len(result.absent) == 4


def test_unknown_roll_numbers_are_ignored(store, delegate, reconciler, classroom, photo):
    delegate.present("101", "999")
    roster = store.find_students_by_class(classroom.id)

    result = reconciler.mark_attendance(classroom.id, DAY, photo, roster)

    assert rolls(result.present) == ["101"]
    assert "999" not in result.boxes


def test_partition_is_complete_and_disjoint(store, delegate, reconciler, classroom, photo):
    roster = store.find_students_by_class(classroom.id)
    for present in [(), ("101",), ("101", "102", "110"), ("102", "103", "404")]:
        delegate.present(*present)
        result = reconciler.mark_attendance(classroom.id, DAY, photo, roster)
        present_ids = {s.id for s in result.present}
        absent_ids = {s.id for s in result.absent}
        assert present_ids | absent_ids == {s.id for s in roster}
        assert present_ids & absent_ids == set()


def test_marking_twice_is_idempotent(store, delegate, reconciler, classroom, photo):
    delegate.present("101", "102")
    first = reconciler.mark_attendance(classroom.id, DAY, photo, store.find_students_by_class(classroom.id))
    second = reconciler.mark_attendance(classroom.id, DAY, photo, store.find_students_by_class(classroom.id))

    assert first.marked_count == 2
    assert second.marked_count == 0
    assert rolls(second.present) == ["101", "102"]
    assert store.find_student_by_roll_number(classroom.id, "101").attendance_history == [DAY]


def test_stale_roster_still_does_not_duplicate(store, delegate, reconciler, classroom, photo):
    stale = store.find_students_by_class(classroom.id)
    delegate.present("101")
    reconciler.mark_attendance(classroom.id, DAY, photo, stale)
    # same stale snapshot, the date is already stored
    result = reconciler.mark_attendance(classroom.id, DAY, photo, stale)

    assert rolls(result.present) == ["101"]
    assert result.marked_count == 0
    assert result.success
    assert store.find_student_by_roll_number(classroom.id, "101").attendance_history == [DAY]


def test_delegate_failure_aborts_before_writes(store, delegate, reconciler, classroom, photo):
    delegate.error = DelegateUnavailable("connection refused")
    roster = store.find_students_by_class(classroom.id)

    with pytest.raises(DelegateUnavailable):
        reconciler.mark_attendance(classroom.id, DAY, photo, roster)

    assert all(s.attendance_history == [] for s in store.find_students_by_class(classroom.id))


def test_delegate_timeout(store, delegate, classroom, photo):
    delegate.present("101")
    delegate.delay = 0.5
    reconciler = AttendanceReconciler(store, delegate, delegate_timeout=0.05)
    try:
        with pytest.raises(DelegateTimeout):
            reconciler.mark_attendance(classroom.id, DAY, photo, store.find_students_by_class(classroom.id))
    finally:
        reconciler.shutdown()
    assert store.find_student_by_roll_number(classroom.id, "101").attendance_history == []


class FlakyStore(MemoryRosterStore):

    def __init__(self):
        super().__init__()
        self.reject = set()

    def append_attendance_date(self, class_id, student_id, date_str):
        if student_id in self.reject:
            raise WriteRejected(student_id, "permission denied")
        return super().append_attendance_date(class_id, student_id, date_str)


def test_write_failures_are_reported_per_student(delegate, photo):
    store = FlakyStore()
    class_record = store.create_class("Chemistry", "CH1234", "f1")
    a = store.add_student(class_record.id, "A", "1", profile_photo_url=photo)
    b = store.add_student(class_record.id, "B", "2", profile_photo_url=photo)
    c = store.add_student(class_record.id, "C", "3", profile_photo_url=photo)
    store.reject.add(b.id)
    delegate.present("1", "2", "3")

    reconciler = AttendanceReconciler(store, delegate)
    try:
        result = reconciler.mark_attendance(class_record.id, DAY, photo, store.find_students_by_class(class_record.id))
    finally:
        reconciler.shutdown()

    assert result.marked_count == 2
    assert not result.success
    assert [(f.student_id, f.roll_number) for f in result.failures] == [(b.id, "2")]
    assert store.get_student(class_record.id, a.id).attendance_history == [DAY]
    assert store.get_student(class_record.id, b.id).attendance_history == []
    assert store.get_student(class_record.id, c.id).attendance_history == [DAY]


def test_future_date_rejected(store, reconciler, classroom, photo):
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    with pytest.raises(InvalidAttendanceDate):
        reconciler.mark_attendance(classroom.id, tomorrow, photo, store.find_students_by_class(classroom.id))


def test_future_date_allowed_when_configured(store, delegate, classroom, photo):
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    delegate.present("101")
    reconciler = AttendanceReconciler(store, delegate, allow_future=True)
    try:
        result = reconciler.mark_attendance(classroom.id, tomorrow, photo,
                                            store.find_students_by_class(classroom.id))
    finally:
        reconciler.shutdown()
    assert result.date == tomorrow
    assert result.marked_count == 1


def test_date_before_minimum_rejected(store, reconciler, classroom, photo):
    with pytest.raises(InvalidAttendanceDate):
        reconciler.mark_attendance(classroom.id, "2019-12-31", photo, store.find_students_by_class(classroom.id))


def test_invalid_photo_rejected(store, delegate, reconciler, classroom):
    with pytest.raises(InvalidImage):
        reconciler.mark_attendance(classroom.id, DAY, "not-an-image", store.find_students_by_class(classroom.id))
    assert delegate.calls["recognize"] == []


def test_manual_marking(store, reconciler, classroom):
    roster = store.find_students_by_class(classroom.id)
    by_roll = {s.roll_number: s for s in roster}

    result = reconciler.mark_manual(classroom.id, DAY, [by_roll["103"].id, by_roll["101"].id, "missing"], roster)

    assert rolls(result.present) == ["101", "103"]
    assert rolls(result.absent) == ["102", "110"]
    assert result.marked_count == 2
    again = reconciler.mark_manual(classroom.id, DAY, [by_roll["103"].id],
                                   store.find_students_by_class(classroom.id))
    assert again.marked_count == 0
    assert store.get_student(classroom.id, by_roll["103"].id).attendance_history == [DAY]


def test_count_faces(delegate, reconciler, photo):
    delegate.face_count_response = {"faceCount": 7}
    assert reconciler.count_faces(photo) == 7


def test_count_faces_malformed(delegate, reconciler, photo):
    delegate.face_count_response = {"faces": "seven"}
    with pytest.raises(MalformedDelegateResponse):
        reconciler.count_faces(photo)


def test_parse_recognition_response_accepts_plain_roll_numbers():
    present, faces, boxes = parse_recognition_response(
        {"presentStudents": ["101", 102, True, None], "totalFacesDetected": "3"}, {"101", "102"})
    assert present == {"101", "102"}
    assert faces == 0
    assert boxes == {}
