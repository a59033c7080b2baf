from flask import Blueprint

staff_api_bp = Blueprint("staff_api", __name__, url_prefix="/staff/api")

from . import api  # noqa: E402,F401
