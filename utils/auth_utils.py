# utils/auth_utils.py
from functools import wraps

from flask import jsonify, session

from errors import NotAuthorized


def current_user():
    """Session profile dict: {uid, email, name, role}, or None."""
    return session.get("user")


def role_required(role):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            user = current_user()
            if not user:
                return jsonify({"success": False, "msg": "Not logged in"}), 401
            if user.get("role") != role:
                return jsonify({"success": False, "msg": "Unauthorized"}), 403
            return view(*args, **kwargs)
        return wrapped
    return decorator


faculty_required = role_required("faculty")
student_required = role_required("student")


def ensure_owner(class_record):
    if class_record.faculty_id != current_user()["uid"]:
        raise NotAuthorized("You do not have permission to view this class.")
