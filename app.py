# app.py
import logging
from types import SimpleNamespace

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import Config
from errors import AttendanceError
from logging_config import setup_logging
from models.memory_store import MemoryRosterStore
from routes.auth_routes import auth_bp
from routes.faculty_routes import faculty_bp
from routes.student_routes import student_bp
from services.delegates import GeminiDelegate
from services.reconciler import AttendanceReconciler
from services.roster_service import RosterService
from services.summary import SummaryRequester

logger = logging.getLogger(__name__)


def _default_store(app):
    """Firestore when a service account is configured, else the in-process store."""
    from models.firestore_store import FirestoreRosterStore, init_firebase

    firebase_app = init_firebase(app.config["FIREBASE_CREDENTIALS"])
    if firebase_app is None:
        logger.warning("Using in-memory roster store; data is lost on restart.")
        return MemoryRosterStore(), False
    return FirestoreRosterStore(firebase_app), True


def create_app(config=None, store=None, recognition_delegate=None, summary_delegate=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)
    app.secret_key = app.config["SECRET_KEY"]

    setup_logging(app)

    firebase_available = False
    if store is None:
        store, firebase_available = _default_store(app)

    timeout = app.config["DELEGATE_TIMEOUT_SECONDS"]
    if recognition_delegate is None or summary_delegate is None:
        gemini = GeminiDelegate(app.config["GEMINI_API_KEY"], app.config["GEMINI_MODEL"], timeout)
        recognition_delegate = recognition_delegate or gemini
        summary_delegate = summary_delegate or gemini

    app.extensions["faceattend"] = SimpleNamespace(
        store=store,
        firebase_available=firebase_available,
        roster=RosterService(store, app.config["PROFILE_PHOTO_MAX_PX"]),
        reconciler=AttendanceReconciler(
            store,
            recognition_delegate,
            delegate_timeout=timeout,
            write_workers=app.config["WRITE_WORKERS"],
            min_date=app.config["MIN_ATTENDANCE_DATE"],
            allow_future=app.config["ALLOW_FUTURE_DATES"],
        ),
        summaries=SummaryRequester(summary_delegate, timeout),
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(faculty_bp, url_prefix="/faculty")
    app.register_blueprint(student_bp, url_prefix="/student")

    @app.errorhandler(AttendanceError)
    def handle_attendance_error(e):
        if e.status_code >= 500:
            logger.error("%s: %s", e.__class__.__name__, e.msg)
        return jsonify({"success": False, "msg": e.msg, "error": e.__class__.__name__}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"success": False, "msg": e.description}), e.code

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy", "firebase": firebase_available})

    return app


# -------------------- Run --------------------
if __name__ == '__main__':
    create_app().run(debug=True)
