"""
Weekly Schedule Blueprint.

Endpoints:
  GET    /schedule?team_id&weekday         clients a team visits that day
  GET    /schedule/unassigned?weekday      clients without a team that day
  POST   /schedule                         associate {client_id, weekday, team_id}
  DELETE /schedule/<client_id>/<weekday>   dissociate
"""

from flask import Blueprint, jsonify, request

from poolops.blueprints import company_id_required, json_body
from poolops.core.exceptions import ValidationError
from poolops.services import schedule_service
from poolops.services.commands import AssociationCommand

schedule_bp = Blueprint("schedule", __name__, url_prefix="/api/v1")


@schedule_bp.route("/schedule", methods=["GET"])
def list_day():
    cid = company_id_required()
    team_id = request.args.get("team_id", type=int)
    if team_id is None:
        raise ValidationError("team_id is required", details={"team_id": "is required"})
    rows = schedule_service.list_clients_for_day(cid, team_id, request.args.get("weekday"))
    return jsonify({"items": [a.to_dict() for a in rows], "total": len(rows)})


@schedule_bp.route("/schedule/unassigned", methods=["GET"])
def list_unassigned():
    cid = company_id_required()
    clients = schedule_service.list_unassigned_clients(cid, request.args.get("weekday"))
    return jsonify({"items": [c.to_dict() for c in clients], "total": len(clients)})


@schedule_bp.route("/schedule", methods=["POST"])
def associate():
    cid = company_id_required()
    cmd = AssociationCommand.from_payload(json_body())
    association = schedule_service.associate(cid, cmd.client_id, cmd.weekday, cmd.team_id)
    return jsonify(association.to_dict()), 201


@schedule_bp.route("/schedule/<int:client_id>/<weekday>", methods=["DELETE"])
def dissociate(client_id, weekday):
    cid = company_id_required()
    schedule_service.dissociate(cid, client_id, weekday)
    return jsonify({"deleted": True, "client_id": client_id, "weekday": weekday})
