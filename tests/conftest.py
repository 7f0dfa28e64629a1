import base64
import io
import time

import pytest
from PIL import Image

from app import create_app
from models.memory_store import MemoryRosterStore
from services.delegates import RecognitionDelegate, SummaryDelegate
from services.reconciler import AttendanceReconciler

ROLE_MAPPING = {
    "prof@college.edu": "faculty",
    "other.prof@college.edu": "faculty",
    "asha@college.edu": "student",
    "ravi@college.edu": "student",
}


def make_photo(color=(200, 120, 40), size=(48, 32), fmt="PNG"):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    mime = "image/png" if fmt == "PNG" else "image/jpeg"
    return f"data:{mime};base64,{base64.b64encode(buf.getvalue()).decode('utf-8')}"


class StubDelegate(RecognitionDelegate, SummaryDelegate):
    """Deterministic delegate; set the *_response attributes or error/delay per test."""

    def __init__(self):
        self.recognition_response = {"presentStudents": [], "totalFacesDetected": 0}
        self.face_count_response = {"faceCount": 0}
        self.summary_response = {"summary": "Attendance looks healthy."}
        self.error = None
        self.delay = 0
        self.calls = {"recognize": [], "count_faces": [], "summarize": []}

    def _answer(self, name, args, response):
        self.calls[name].append(args)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return response

    def present(self, *roll_numbers, faces=None):
        self.recognition_response = {
            "totalFacesDetected": len(roll_numbers) if faces is None else faces,
            "presentStudents": [
                {"rollNumber": r, "box": {"x": 0.1, "y": 0.2, "width": 0.05, "height": 0.08}}
                for r in roll_numbers
            ],
        }

    def recognize(self, request):
        return self._answer("recognize", request, self.recognition_response)

    def count_faces(self, photo):
        return self._answer("count_faces", photo, self.face_count_response)

    def summarize(self, class_code, start_date, end_date, attendance_data):
        return self._answer("summarize", (class_code, start_date, end_date, attendance_data),
                            self.summary_response)


@pytest.fixture
def photo():
    return make_photo()


@pytest.fixture
def store():
    return MemoryRosterStore()


@pytest.fixture
def delegate():
    return StubDelegate()


@pytest.fixture
def reconciler(store, delegate):
    r = AttendanceReconciler(store, delegate, delegate_timeout=2.0, write_workers=4)
    yield r
    r.shutdown()


@pytest.fixture
def classroom(store, photo):
    """A class with four students; 101 and 102 and 110 have reference photos."""
    class_record = store.create_class("Data Structures", "AB12CD", "email:prof@college.edu")
    store.add_student(class_record.id, "Asha", "101", profile_photo_url=photo)
    store.add_student(class_record.id, "Ravi", "110", profile_photo_url=photo)
    store.add_student(class_record.id, "Meena", "102", profile_photo_url=photo)
    store.add_student(class_record.id, "Karan", "103")
    return class_record


@pytest.fixture
def app(store, delegate):
    app = create_app(
        config={
            "TESTING": True,
            "LOG_DIR": "",
            "ROLE_MAPPING": ROLE_MAPPING,
            "SECRET_KEY": "test-secret",
            "JWT_SECRET": "test-jwt-secret",
            "DELEGATE_TIMEOUT_SECONDS": 2.0,
        },
        store=store,
        recognition_delegate=delegate,
        summary_delegate=delegate,
    )
    yield app
    services = app.extensions["faceattend"]
    services.reconciler.shutdown()
    services.summaries.shutdown()


def _login(app, email):
    client = app.test_client()
    resp = client.post("/login", json={"email": email, "name": email.split("@")[0].title()})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def faculty_client(app):
    return _login(app, "prof@college.edu")


@pytest.fixture
def student_client(app):
    return _login(app, "asha@college.edu")


@pytest.fixture
def login(app):
    return lambda email: _login(app, email)
