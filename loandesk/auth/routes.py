from flask import current_app, jsonify, request, session
from werkzeug.security import check_password_hash

from ..access import get_partner_name
from ..errors import AuthError
from ..store import get_store
from ..utils import clean_text, now_iso
from . import auth_bp
from .decorators import bearer_token, current_user, login_required
from .tokens import create_jwt, verify_jwt


def public_user(user, partners):
    return {
        "id": user["id"],
        "name": user["name"],
        "email": user["email"],
        "role": user["role"],
        "partner_id": user.get("partner_id"),
        "partner_name": get_partner_name(user["partner_id"], partners) if user.get("partner_id") else None,
        "status": user["status"],
    }


def authenticate(store, email, password, max_attempts=3):
    """Check credentials, counting failures towards an account block."""
    email = clean_text(email, "email").lower()
    user = next((u for u in store.users if u["email"].lower() == email), None)
    if user is None:
        raise AuthError("Invalid email or password")
    if user.get("blocked"):
        raise AuthError("Account is blocked after too many failed attempts. Contact an administrator.", 403)
    if user.get("status") != "Active":
        raise AuthError("Account is inactive", 403)

    if not check_password_hash(user["password_hash"], str(password or "")):
        user["login_attempts"] = user.get("login_attempts", 0) + 1
        if user["login_attempts"] >= max_attempts:
            user["blocked"] = True
            user["updated_at"] = now_iso()
            current_app.logger.warning("User %s blocked after %s failed logins", user["email"], user["login_attempts"])
            raise AuthError("Account is blocked after too many failed attempts. Contact an administrator.", 403)
        remaining = max_attempts - user["login_attempts"]
        raise AuthError(f"Invalid email or password. {remaining} attempt(s) remaining")

    user["login_attempts"] = 0
    return user


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or request.form
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return jsonify({"status": "error", "message": "Email and password are required"}), 400

    store = get_store()
    user = authenticate(store, email, password, current_app.config.get("MAX_LOGIN_ATTEMPTS", 3))

    session.clear()
    session["user_id"] = user["id"]
    session["email"] = user["email"]
    session["role"] = user["role"]
    session["partner_id"] = user.get("partner_id")
    current_app.logger.info("User %s signed in as %s", user["email"], user["role"])
    return jsonify({
        "status": "success",
        "message": "Login successful",
        "token": create_jwt(user["email"], user["role"]),
        "user": public_user(user, store.partners),
    })


@auth_bp.route("/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify({"status": "success", "message": "Logged out"})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"status": "success", "user": public_user(current_user(), get_store().partners)})


@auth_bp.route("/validate-token", methods=["POST"])
def validate_token():
    data = request.get_json(silent=True) or {}
    token = data.get("token") or bearer_token()
    if not token:
        return jsonify({"status": "error", "message": "Token is required"}), 400
    ok, payload = verify_jwt(token)
    if not ok:
        return jsonify({"status": "error", "message": f"Invalid token: {payload}"}), 401
    return jsonify({"status": "success", "email": payload["sub"], "role": payload.get("role"), "exp": payload["exp"]})


@auth_bp.route("/refresh-token", methods=["POST"])
@login_required
def refresh_token():
    user = current_user()
    return jsonify({"status": "success", "token": create_jwt(user["email"], user["role"])})
