import logging

from flask import Blueprint, current_app, jsonify, request, session
from firebase_admin import auth as firebase_auth

from errors import NotAuthorized
from models.user_model import ROLES, UserProfile
from utils.auth_utils import current_user

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


def _store():
    return current_app.extensions["faceattend"].store


def _sign_in(profile):
    session.clear()
    session["user"] = profile.to_session()
    logger.info("%s signed in as %s", profile.email, profile.role)
    return jsonify({"success": True, "user": session["user"]})


# Email login for deployments without Firebase (and for local use)
@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or request.form
    email = (data.get("email") or "").strip().lower()
    role = current_app.config["ROLE_MAPPING"].get(email)
    if not email or role not in ROLES:
        return jsonify({"success": False, "msg": "Unauthorized email (use ROLE_MAPPING)"}), 403

    store = _store()
    uid = f"email:{email}"
    profile = store.get_user(uid)
    if profile is None:
        profile = store.save_user(UserProfile(uid=uid, email=email, name=data.get("name") or email, role=role))
    return _sign_in(profile)


# Google/Firebase login endpoint (client sends Firebase ID token)
@auth_bp.route("/google_login", methods=["POST"])
def google_login():
    if not current_app.extensions["faceattend"].firebase_available:
        return jsonify({"success": False, "msg": "Server Firebase not configured. Place service account JSON and restart."}), 500

    data = request.get_json(silent=True) or {}
    id_token = data.get("token")
    if not id_token:
        return jsonify({"success": False, "msg": "No ID token provided."}), 400

    try:
        decoded_token = firebase_auth.verify_id_token(id_token)
    except (firebase_auth.InvalidIdTokenError, ValueError) as e:
        logger.warning("firebase verify error: %s", e)
        return jsonify({"success": False, "msg": "Token verification failed."}), 400

    uid = decoded_token["uid"]
    email = decoded_token.get("email")
    if not email:
        return jsonify({"success": False, "msg": "Email not found in token."}), 400

    store = _store()
    profile = store.get_user(uid)
    if profile is None:
        # first sign-in doubles as sign-up: the client picks the role
        role = data.get("role") or current_app.config["ROLE_MAPPING"].get(email.lower())
        if role not in ROLES:
            raise NotAuthorized("Choose a role (faculty or student) to sign up.")
        profile = store.save_user(UserProfile(uid=uid, email=email,
                                              name=data.get("name") or decoded_token.get("name", email),
                                              role=role))
    return _sign_in(profile)


@auth_bp.route("/logout")
def logout():
    session.clear()
    return jsonify({"success": True})


@auth_bp.route("/me")
def me():
    user = current_user()
    if not user:
        return jsonify({"success": False, "msg": "Not logged in"}), 401
    return jsonify({"success": True, "user": user})
