from functools import wraps

from flask import g, jsonify, request, session

from ..store import get_store
from .tokens import verify_jwt


def bearer_token():
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def resolve_user():
    """Find the signed-in user from the session, or from a Bearer token."""
    store = get_store()
    user_id = session.get("user_id")
    if user_id:
        user = store.get("users", user_id)
        if user and user.get("status") == "Active":
            return user

    token = bearer_token()
    if token:
        ok, data = verify_jwt(token)
        if ok:
            for user in store.users:
                if user["email"] == data.get("sub") and user.get("status") == "Active":
                    return user
    return None


def current_user():
    user = getattr(g, "user", None)
    if user is None:
        user = resolve_user()
        g.user = user
    return user


def login_required(view_func):
    """Reject the request with 401 unless a user is signed in."""
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            return jsonify({"status": "error", "message": "Authentication required"}), 401
        return view_func(*args, **kwargs)
    return wrapper


def role_required(*roles):
    """Ensure the signed-in user has one of the given roles (e.g. 'admin', 'staff')."""
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                return jsonify({"status": "error", "message": "Authentication required"}), 401
            if roles and user.get("role") not in roles:
                return jsonify({"status": "error", "message": "You do not have permission to do that"}), 403
            return view_func(*args, **kwargs)
        return wrapper
    return decorator
