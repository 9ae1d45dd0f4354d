"""
Maintenance Blueprint: cycle sheet, parameter outcomes and reset.

Endpoints:
  Cycle sheet:   GET  /cycles/current?company_id&client_id&weekday
                 GET  /cycles/<id>
  Parameters:    POST /cycles/<id>/parameters/<name>/measurement
                 POST /cycles/<id>/parameters/<name>/status
                 POST /cycles/<id>/parameters/<name>/assistance
  Record:        POST /cycles/<id>/conclude
                 POST /cycles/<id>/not-concluded
  Day view:      GET  /teams/<id>/days/<weekday>/cycles
  Reset:         POST /companies/<id>/reset
"""

from flask import Blueprint, jsonify, request

from poolops.blueprints import company_id_required, json_body
from poolops.models.maintenance import MaintenanceRecord
from poolops.services import cycle_service, maintenance_lifecycle
from poolops.services.commands import (
    CloseRecordCommand,
    MeasurementCommand,
    OpenCycleCommand,
    OutcomeCommand,
    parse_actor,
)
from poolops.services.helpers.scoped_queries import get_scoped
from poolops.services.reset_service import reset_company

maintenance_bp = Blueprint("maintenance", __name__, url_prefix="/api/v1")


# ═════════════════════════════════════════════════════════════════════════════
# Cycle sheet
# ═════════════════════════════════════════════════════════════════════════════

@maintenance_bp.route("/cycles/current", methods=["GET"])
def current_cycle():
    """Fetch-or-create the cycle for a (client, weekday) and render its sheet."""
    cid = company_id_required()
    cmd = OpenCycleCommand.from_payload({
        "client_id": request.args.get("client_id"),
        "weekday": request.args.get("weekday"),
    })
    return jsonify(cycle_service.get_cycle_sheet(cid, cmd.client_id, cmd.weekday))


@maintenance_bp.route("/cycles/<int:record_id>", methods=["GET"])
def get_cycle(record_id):
    cid = company_id_required()
    record = get_scoped(MaintenanceRecord, record_id, company_id=cid)
    return jsonify(cycle_service.build_sheet(record))


# ═════════════════════════════════════════════════════════════════════════════
# Parameter instance actions
# ═════════════════════════════════════════════════════════════════════════════

@maintenance_bp.route("/cycles/<int:record_id>/parameters/<name>/measurement", methods=["POST"])
def submit_measurement(record_id, name):
    cid = company_id_required()
    data = json_body()
    cmd = MeasurementCommand.from_payload(data)
    inst = maintenance_lifecycle.record_measurement(cid, record_id, name, cmd.value)
    return jsonify(inst.to_dict())


@maintenance_bp.route("/cycles/<int:record_id>/parameters/<name>/status", methods=["POST"])
def submit_outcome(record_id, name):
    cid = company_id_required()
    data = json_body()
    cmd = OutcomeCommand.from_payload(data)
    inst = maintenance_lifecycle.set_parameter_status(
        cid, record_id, name, cmd.status,
        product=cmd.product, quantity=cmd.quantity, reason=cmd.reason,
    )
    return jsonify(inst.to_dict())


@maintenance_bp.route("/cycles/<int:record_id>/parameters/<name>/assistance", methods=["POST"])
def request_assistance(record_id, name):
    """Administration takes over a parameter the team cannot adjust."""
    cid = company_id_required()
    data = json_body()
    message = data.get("message") if isinstance(data.get("message"), str) else None
    inst = maintenance_lifecycle.request_assistance(cid, record_id, name, message)
    return jsonify(inst.to_dict())


# ═════════════════════════════════════════════════════════════════════════════
# Record lifecycle
# ═════════════════════════════════════════════════════════════════════════════

@maintenance_bp.route("/cycles/<int:record_id>/conclude", methods=["POST"])
def conclude(record_id):
    cid = company_id_required()
    cmd = CloseRecordCommand.from_payload(json_body())
    record = maintenance_lifecycle.conclude_record(cid, record_id, actor=cmd.actor)
    return jsonify(record.to_dict())


@maintenance_bp.route("/cycles/<int:record_id>/not-concluded", methods=["POST"])
def not_concluded(record_id):
    cid = company_id_required()
    cmd = CloseRecordCommand.from_payload(json_body())
    record = maintenance_lifecycle.mark_not_concluded(cid, record_id, actor=cmd.actor, reason=cmd.reason)
    return jsonify(record.to_dict())


# ═════════════════════════════════════════════════════════════════════════════
# Day view
# ═════════════════════════════════════════════════════════════════════════════

@maintenance_bp.route("/teams/<int:team_id>/days/<weekday>/cycles", methods=["GET"])
def day_cycles(team_id, weekday):
    cid = company_id_required()
    items = cycle_service.list_day_cycles(cid, team_id, weekday)
    return jsonify({
        "items": items,
        "progress": cycle_service.day_progress(cid, team_id, weekday),
    })


# ═════════════════════════════════════════════════════════════════════════════
# Reset
# ═════════════════════════════════════════════════════════════════════════════

@maintenance_bp.route("/companies/<int:company_id>/reset", methods=["POST"])
def reset(company_id):
    result = reset_company(company_id, actor=parse_actor(json_body(), "administration"))
    return jsonify(result.to_dict())
