from flask import current_app, jsonify, request

from ..auth.decorators import current_user, login_required
from ..reports.builders import dashboard_summary
from ..store import get_store
from . import core_bp
from .search import get_search_suggestions, search_all


@core_bp.route("/")
def health():
    return jsonify({
        "status": "success",
        "service": current_app.config.get("ORGANISATION_NAME"),
        "records": get_store().counts(),
    })


@core_bp.route("/api/dashboard", methods=["GET"])
@login_required
def dashboard():
    summary = dashboard_summary(get_store(), current_user(), request.args.get("as_of"))
    return jsonify({"status": "success", "summary": summary})


@core_bp.route("/api/search", methods=["GET"])
@login_required
def search():
    query = request.args.get("q", "")
    results = search_all(query, get_store(), current_user())
    return jsonify({"status": "success", "query": query, "results": results})


@core_bp.route("/api/search/suggestions", methods=["GET"])
@login_required
def search_suggestions():
    return jsonify({"status": "success", "suggestions": get_search_suggestions(get_store(), current_user())})
