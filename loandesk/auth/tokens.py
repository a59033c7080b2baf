import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


def _jwt_secret():
    return current_app.config.get("JWT_SECRET") or current_app.config["SECRET_KEY"]


def create_jwt(email, role, expires_minutes=None):
    if expires_minutes is None:
        expires_minutes = current_app.config.get("JWT_EXPIRES_MINUTES", 30)
    now = datetime.now(timezone.utc)
    payload = {
        "sub": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
        "rnd": uuid.uuid4().hex,
    }
    return jwt.encode(payload, _jwt_secret(), algorithm="HS256")


def verify_jwt(token):
    """Return ``(ok, payload_or_error)``."""
    try:
        data = jwt.decode(token, _jwt_secret(), algorithms=["HS256"])
        return True, data
    except jwt.PyJWTError as e:
        return False, str(e)
