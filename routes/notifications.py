"""Notification inbox for users and organizations."""
from datetime import datetime

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from extensions import db
from models import Notification, Organization
from utils.errors import ActionForbidden, NotFound

notifications_bp = Blueprint("notifications", __name__, url_prefix="/notifications")


def _inbox_query():
    actor = current_user._get_current_object()
    if isinstance(actor, Organization):
        return Notification.query.filter(Notification.org_id == actor.id, Notification.user_id.is_(None))
    return Notification.query.filter(Notification.user_id == actor.id)


@notifications_bp.route("", methods=["GET"])
@login_required
def list_notifications():
    limit = int(current_app.config.get("NOTIFICATION_INBOX_LIMIT", 50))
    items = _inbox_query().order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    return jsonify({"success": True, "items": [item.to_payload() for item in items]})


@notifications_bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count():
    count = _inbox_query().filter(Notification.read_at.is_(None)).count()
    return jsonify({"success": True, "count": count})


@notifications_bp.route("/<int:notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id):
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    if _inbox_query().filter(Notification.id == notification_id).first() is None:
        raise ActionForbidden("Access denied")
    if notification.read_at is None:
        notification.read_at = datetime.utcnow()
        db.session.commit()
    return jsonify({"success": True, "message": "Notification marked as read"})
