from datetime import date

from flask import Blueprint, current_app, jsonify, request

from errors import AttendanceError, StudentNotFound
from utils.auth_utils import current_user, student_required
from utils.date_utils import parse_date
from utils.image_utils import photo_from_request
from utils.jwt_utils import verify_invite_token

student_bp = Blueprint("student", __name__)


@student_bp.before_request
@student_required
def require_student():
    return None


def _services():
    return current_app.extensions["faceattend"]


@student_bp.route("/lookup", methods=["POST"])
def lookup_class():
    data = request.get_json(silent=True) or {}
    class_code = (data.get("classCode") or "").strip()
    if len(class_code) < 6:
        return jsonify({"success": False, "msg": "Class code must be at least 6 characters."}), 400
    class_record = _services().roster.get_class_by_code(class_code)
    return jsonify({"success": True, "class": {"className": class_record.class_name,
                                               "classCode": class_record.class_code}})


@student_bp.route("/enroll", methods=["POST"])
def enroll():
    """Join by class code or by a scanned invite token."""
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    if token:
        class_code = verify_invite_token(token, current_app.config["JWT_SECRET"], current_app.config["JWT_ALGO"])
    else:
        class_code = data.get("classCode")
    if not class_code:
        raise AttendanceError("Class code or invite token is required.")

    roster = _services().roster
    class_record = roster.get_class_by_code(class_code)
    user = current_user()
    student = roster.add_student(class_record, user["name"], data.get("rollNumber"),
                                 uid=user["uid"], profile_photo=data.get("photo"))
    return jsonify({"success": True, "msg": f"You have been enrolled in {class_record.class_name}.",
                    "class": {"className": class_record.class_name, "classCode": class_record.class_code},
                    "student": student.to_json()}), 201


@student_bp.route("/classes/<class_code>/photo", methods=["POST"])
def set_photo(class_code):
    roster = _services().roster
    class_record = roster.get_class_by_code(class_code)
    student = _services().store.find_student_by_uid(class_record.id, current_user()["uid"])
    if student is None:
        raise StudentNotFound("You are not enrolled in this class.")
    roster.set_profile_photo(class_record, student, photo_from_request(request))
    return jsonify({"success": True})


@student_bp.route("/attendance")
def student_attendance():
    selected_date = parse_date(request.args.get("date") or date.today().isoformat()).isoformat()

    res = []
    for class_record, student in _services().roster.student_enrollments(current_user()["uid"]):
        res.append({
            "className": class_record.class_name,
            "classCode": class_record.class_code,
            "rollNumber": student.roll_number,
            "hasPhoto": student.has_photo,
            "attendanceHistory": sorted(student.attendance_history),
            "totalAttendance": len(student.attendance_history),
            "status": "Present" if student.has_attended(selected_date) else "Absent",
        })
    return jsonify({"date": selected_date, "classes": res})
