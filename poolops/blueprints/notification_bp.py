"""
PoolOps: Pool Maintenance Operations
Notification Desk Blueprint.

Provides:
    - Notification listing (status / client filters, paginated)
    - Assign, progress and resolve
    - Anomaly reports filed from the field
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from poolops.blueprints import company_id_required, json_body, paginate_query
from poolops.core.exceptions import ValidationError
from poolops.models.notification import NOTIFICATION_STATUSES
from poolops.services.commands import NotificationUpdateCommand, ReportCommand, parse_actor
from poolops.services.notification import NotificationService

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")


@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    """List a company's notifications, newest first."""
    cid = company_id_required()
    status = request.args.get("status")
    if status and status not in NOTIFICATION_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {sorted(NOTIFICATION_STATUSES)}",
            details={"status": "invalid"},
        )
    client_id = request.args.get("client_id", type=int)
    items, total = paginate_query(NotificationService.query_for(cid, status=status, client_id=client_id))
    return jsonify({"items": [n.to_dict() for n in items], "total": total})


@notification_bp.route("/notifications/<int:nid>", methods=["GET"])
def get_notification(nid):
    cid = company_id_required()
    return jsonify(NotificationService.get(cid, nid).to_dict())


@notification_bp.route("/notifications/<int:nid>", methods=["PATCH"])
def update_notification(nid):
    """Assign and/or change the status of a notification."""
    cid = company_id_required()
    data = json_body()
    cmd = NotificationUpdateCommand.from_payload(data)
    notif = NotificationService.update(cid, nid, cmd, actor=parse_actor(data, "administration"))
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications/<int:nid>", methods=["DELETE"])
def delete_notification(nid):
    cid = company_id_required()
    NotificationService.delete(cid, nid)
    return jsonify({"deleted": True, "id": nid})


@notification_bp.route("/notifications/reports", methods=["POST"])
def create_report():
    """File an anomaly report (message, attachment URIs, extra-service value)."""
    cid = company_id_required()
    cmd = ReportCommand.from_payload(json_body())
    notif = NotificationService.create_report(cid, cmd)
    return jsonify(notif.to_dict()), 201
