from flask import jsonify, request

from ..auth.decorators import current_user, login_required
from ..store import get_store
from . import notification_bp
from .alerts import generate_notifications, get_critical_notification_count, get_notification_count


@notification_bp.route("/", methods=["GET"])
@login_required
def list_notifications():
    notifications = generate_notifications(get_store(), current_user(), request.args.get("as_of"))
    priority = request.args.get("priority")
    if priority:
        notifications = [n for n in notifications if n["priority"] == priority]
    return jsonify({
        "status": "success",
        "unread": get_notification_count(notifications),
        "critical": get_critical_notification_count(notifications),
        "notifications": notifications,
    })
