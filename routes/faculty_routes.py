import io
import json
import logging
import queue
from datetime import date

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from utils.auth_utils import current_user, ensure_owner, faculty_required
from utils.csv_utils import attendance_matrix_csv
from utils.date_utils import default_summary_range
from utils.image_utils import photo_from_request
from utils.jwt_utils import create_invite_token
from utils.qr_utils import qr_png_base64
from services.roster_service import history_records

logger = logging.getLogger(__name__)

faculty_bp = Blueprint("faculty", __name__)

STREAM_HEARTBEAT_SECONDS = 30


def put_latest(updates, payload):
    """
    Enqueue payload on a bounded queue, dropping the oldest entries while it
    is full. Safe to call from several listener threads at once.
    """
    while True:
        try:
            updates.put_nowait(payload)
            return
        except queue.Full:
            try:
                updates.get_nowait()
            except queue.Empty:
                pass


@faculty_bp.before_request
@faculty_required
def require_faculty():
    return None


def _services():
    return current_app.extensions["faceattend"]


def _owned_class(class_code):
    class_record = _services().roster.get_class_by_code(class_code)
    ensure_owner(class_record)
    return class_record


def _payload():
    return request.get_json(silent=True) or request.form


# -------------------- Classes --------------------
@faculty_bp.route("/classes", methods=["POST"])
def create_class():
    data = _payload()
    class_record = _services().roster.create_class(current_user()["uid"], data.get("className"))
    return jsonify({"success": True, "class": class_record.to_json()}), 201


@faculty_bp.route("/classes")
def list_classes():
    classes = _services().store.list_classes_for_faculty(current_user()["uid"])
    return jsonify({"classes": [c.to_json() for c in classes]})


@faculty_bp.route("/classes/<class_code>")
def class_detail(class_code):
    class_record = _owned_class(class_code)
    roster = _services().roster.roster(class_record)
    return jsonify({"class": class_record.to_json(), "students": [s.to_json() for s in roster]})


@faculty_bp.route("/classes/<class_code>/students", methods=["POST"])
def add_student(class_code):
    class_record = _owned_class(class_code)
    data = _payload()
    student = _services().roster.add_student(class_record, data.get("name"), data.get("rollNumber"),
                                             profile_photo=data.get("photo"))
    return jsonify({"success": True, "student": student.to_json()}), 201


@faculty_bp.route("/classes/<class_code>/students/<student_id>/photo", methods=["POST"])
def set_student_photo(class_code, student_id):
    class_record = _owned_class(class_code)
    roster = _services().roster
    student = roster.get_student(class_record, student_id)
    roster.set_profile_photo(class_record, student, photo_from_request(request))
    return jsonify({"success": True})


# -------------------- Attendance --------------------
@faculty_bp.route("/classes/<class_code>/count_faces", methods=["POST"])
def count_faces(class_code):
    _owned_class(class_code)
    count = _services().reconciler.count_faces(photo_from_request(request))
    return jsonify({"success": True, "faceCount": count})


@faculty_bp.route("/classes/<class_code>/attendance/photo", methods=["POST"])
def mark_attendance_photo(class_code):
    class_record = _owned_class(class_code)
    photo = photo_from_request(request)
    target_date = _payload().get("date") or date.today().isoformat()

    services = _services()
    roster = services.roster.roster(class_record)
    result = services.reconciler.mark_attendance(class_record.id, target_date, photo, roster)
    return jsonify(result.to_json())


@faculty_bp.route("/classes/<class_code>/attendance/manual", methods=["POST"])
def mark_attendance_manual(class_code):
    class_record = _owned_class(class_code)
    data = request.get_json(silent=True) or {}
    target_date = data.get("date") or date.today().isoformat()
    student_ids = data.get("studentIds") or []
    if not isinstance(student_ids, list):
        return jsonify({"success": False, "msg": "studentIds must be a list"}), 400

    services = _services()
    roster = services.roster.roster(class_record)
    result = services.reconciler.mark_manual(class_record.id, target_date, student_ids, roster)
    return jsonify(result.to_json())


@faculty_bp.route("/classes/<class_code>/history")
def attendance_history(class_code):
    class_record = _owned_class(class_code)
    roster = _services().roster.roster(class_record)
    return jsonify({"records": history_records(roster)})


@faculty_bp.route("/classes/<class_code>/export_csv")
def export_csv(class_code):
    class_record = _owned_class(class_code)
    roster = _services().roster.roster(class_record)
    content = attendance_matrix_csv(roster)
    return send_file(
        io.BytesIO(content.encode("utf-8")),
        mimetype="text/csv",
        as_attachment=True,
        download_name=f"{class_record.class_code}_attendance.csv",
    )


@faculty_bp.route("/classes/<class_code>/summary", methods=["POST"])
def attendance_summary(class_code):
    class_record = _owned_class(class_code)
    data = request.get_json(silent=True) or {}
    default_start, default_end = default_summary_range(current_app.config["SUMMARY_DEFAULT_DAYS"])
    start = data.get("startDate") or default_start.isoformat()
    end = data.get("endDate") or default_end.isoformat()

    services = _services()
    roster = services.roster.roster(class_record)
    summary = services.summaries.summarize(class_record.class_code, start, end, roster)
    return jsonify({"success": True, "summary": summary, "startDate": start, "endDate": end})


# -------------------- Sharing --------------------
@faculty_bp.route("/classes/<class_code>/invite")
def class_invite(class_code):
    class_record = _owned_class(class_code)
    ttl = current_app.config["INVITE_TTL_SECONDS"]
    token = create_invite_token(class_record.class_code, current_user()["uid"],
                                current_app.config["JWT_SECRET"], ttl, current_app.config["JWT_ALGO"])
    return jsonify({"qr": qr_png_base64(token), "token": token,
                    "classCode": class_record.class_code, "expires_in": ttl})


@faculty_bp.route("/classes/<class_code>/stream")
def roster_stream(class_code):
    """Server-Sent Events: the full roster on connect and after every change."""
    class_record = _owned_class(class_code)
    store = _services().store

    def event_stream():
        updates = queue.Queue(maxsize=10)

        def push(roster):
            put_latest(updates, [s.to_json() for s in roster])

        with store.subscribe_roster(class_record.id, push):
            yield f"data: {json.dumps({'type': 'connected', 'classCode': class_record.class_code})}\n\n"
            while True:
                try:
                    roster = updates.get(timeout=STREAM_HEARTBEAT_SECONDS)
                    yield f"data: {json.dumps({'type': 'roster', 'students': roster})}\n\n"
                except queue.Empty:
                    yield f"data: {json.dumps({'type': 'heartbeat'})}\n\n"

    return Response(event_stream(), mimetype="text/event-stream")
