# config.py
import json
import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default="0"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_role_mapping():
    # ROLE_MAPPING='{"someone@college.edu": "faculty"}'
    raw = os.getenv("ROLE_MAPPING", "").strip()
    if not raw:
        return {}
    return {email.lower(): role for email, role in json.loads(raw).items()}


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "secret123")

    # Join invites (signed QR tokens)
    JWT_SECRET = os.getenv("JWT_SECRET", "jwt_secret_please_change")
    JWT_ALGO = "HS256"
    INVITE_TTL_SECONDS = int(os.getenv("INVITE_TTL_SECONDS", "300"))

    # Firebase service account; in-process store is used when missing
    FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "firebase-adminsdk.json")

    # Gemini
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    DELEGATE_TIMEOUT_SECONDS = float(os.getenv("DELEGATE_TIMEOUT_SECONDS", "30"))

    # Attendance
    WRITE_WORKERS = max(1, int(os.getenv("WRITE_WORKERS", "8")))
    MIN_ATTENDANCE_DATE = os.getenv("MIN_ATTENDANCE_DATE", "2020-01-01")
    ALLOW_FUTURE_DATES = _env_flag("ALLOW_FUTURE_DATES")
    SUMMARY_DEFAULT_DAYS = int(os.getenv("SUMMARY_DEFAULT_DAYS", "7"))
    PROFILE_PHOTO_MAX_PX = int(os.getenv("PROFILE_PHOTO_MAX_PX", "512"))
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10 MB

    # Email sign-in fallback when Firebase is not configured
    ROLE_MAPPING = _env_role_mapping()

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR", "logs")
