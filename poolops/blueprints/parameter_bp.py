"""
Parameter Catalog Blueprint.

Endpoints:
  GET    /parameters                 list (?active=true|false)
  POST   /parameters                 create
  GET    /parameters/<id>            detail
  PUT    /parameters/<id>            partial update
  DELETE /parameters/<id>            delete, or deactivate when in use
  POST   /parameters/<id>/recommend  dosing preview {value, pool_volume | client_id}
"""

from flask import Blueprint, jsonify, request

from poolops.blueprints import company_id_required, json_body, paginate_query
from poolops.core.exceptions import ValidationError
from poolops.services import parameter_service
from poolops.services.commands import ParameterDefinitionCommand
from poolops.services.dosing import to_decimal

parameter_bp = Blueprint("parameters", __name__, url_prefix="/api/v1")


@parameter_bp.route("/parameters", methods=["GET"])
def list_parameters():
    cid = company_id_required()
    active = request.args.get("active")
    if active is not None:
        active = active.lower() in ("1", "true", "yes")
    items, total = paginate_query(parameter_service.list_definitions(cid, active=active))
    return jsonify({"items": [d.to_dict() for d in items], "total": total})


@parameter_bp.route("/parameters", methods=["POST"])
def create_parameter():
    cid = company_id_required()
    cmd = ParameterDefinitionCommand.from_payload(json_body())
    definition = parameter_service.create_definition(cid, cmd)
    return jsonify(definition.to_dict()), 201


@parameter_bp.route("/parameters/<int:definition_id>", methods=["GET"])
def get_parameter(definition_id):
    cid = company_id_required()
    return jsonify(parameter_service.get_definition(cid, definition_id).to_dict())


@parameter_bp.route("/parameters/<int:definition_id>", methods=["PUT"])
def update_parameter(definition_id):
    cid = company_id_required()
    cmd = ParameterDefinitionCommand.from_payload(json_body(), partial=True)
    definition = parameter_service.update_definition(cid, definition_id, cmd)
    return jsonify(definition.to_dict())


@parameter_bp.route("/parameters/<int:definition_id>", methods=["DELETE"])
def delete_parameter(definition_id):
    cid = company_id_required()
    deleted = parameter_service.delete_definition(cid, definition_id)
    return jsonify({"id": definition_id, "deleted": deleted, "deactivated": not deleted})


@parameter_bp.route("/parameters/<int:definition_id>/recommend", methods=["POST"])
def recommend_preview(definition_id):
    cid = company_id_required()
    data = json_body()
    try:
        value = to_decimal(data.get("value"))
        pool_volume = to_decimal(data.get("pool_volume"))
    except ValueError as exc:
        raise ValidationError(str(exc), details={"value": "must be a number"}) from exc
    client_id = data.get("client_id")
    if client_id is not None and not isinstance(client_id, int):
        raise ValidationError("client_id must be an integer", details={"client_id": "invalid"})

    rec = parameter_service.preview_recommendation(
        cid, definition_id, value, pool_volume=pool_volume, client_id=client_id,
    )
    return jsonify(rec.to_dict())
