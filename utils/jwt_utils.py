# utils/jwt_utils.py
import jwt
from datetime import datetime, timedelta, timezone

from errors import InvalidInvite

INVITE_TYPE = "class_invite"


def create_invite_token(class_code: str, faculty_id: str, secret: str, ttl_seconds: int, algo: str = "HS256"):
    """
    Signed join invite. Contains:
      - class_code (str)
      - faculty_id (str)
      - typ, iat, exp
    """
    now = datetime.now(timezone.utc)
    payload = {
        "typ": INVITE_TYPE,
        "class_code": class_code,
        "faculty_id": faculty_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp())
    }
    return jwt.encode(payload, secret, algorithm=algo)


def verify_invite_token(token: str, secret: str, algo: str = "HS256"):
    """
    Returns the class code of a valid invite, else raises InvalidInvite.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algo])
    except jwt.ExpiredSignatureError:
        raise InvalidInvite("Invite QR code expired!")
    except jwt.InvalidTokenError:
        raise InvalidInvite("Invalid invite QR code")
    if payload.get("typ") != INVITE_TYPE or not payload.get("class_code"):
        raise InvalidInvite("Invalid invite QR code")
    return payload["class_code"]
