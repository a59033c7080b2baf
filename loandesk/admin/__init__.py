from flask import Blueprint

admin_api_bp = Blueprint("admin_api", __name__, url_prefix="/admin/api")

from . import api  # noqa: E402,F401
