"""
Maintenance Lifecycle Service: workflow controller for cycles and parameters.

Guards every status change of MaintenanceRecord and ParameterInstance:

    MaintenanceRecord:  pending → concluded | not_concluded
    ParameterInstance:  pending → applied | out_of_stock | not_adjustable
                                 | not_necessary | pending (re-measure)

Outcome guards use a server-side dosing recommendation computed from the
stored measurement and the client's pool volume:
    applied / out_of_stock  → recommendation must carry a product
    not_necessary           → measurement must be in range
    not_adjustable          → direction unsupported (technician), or any
                              pending instance via administration assistance

Every accepted change writes an AuditLog row and commits. The anomaly
notification trigger runs after the commit and cannot undo it.

Usage:
    from poolops.services.maintenance_lifecycle import record_measurement

    inst = record_measurement(company_id=1, record_id=7, parameter_name="pH", value=Decimal("7.0"))
"""

import logging
from datetime import datetime, timezone

from poolops.core.exceptions import (
    IncompleteParameters,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from poolops.models import db
from poolops.models.audit import write_audit
from poolops.models.maintenance import (
    MEASUREMENT_LOCKED_STATUSES,
    PARAMETER_STATUSES,
    STATUS_ACTORS,
    MaintenanceRecord,
    validate_parameter_transition,
    validate_record_transition,
)
from poolops.models.parameter import ParameterDefinition
from poolops.services.cycle_service import get_instance, upsert_instance
from poolops.services.dosing import (
    DIRECTION_UNSUPPORTED,
    MISSING_MEASUREMENT,
    recommend,
    require_adjustment,
    round2,
    to_decimal,
)
from poolops.services.helpers.scoped_queries import get_scoped
from poolops.services.notification import NotificationService

logger = logging.getLogger(__name__)


def _open_record(company_id: int, record_id: int) -> MaintenanceRecord:
    record = get_scoped(MaintenanceRecord, record_id, company_id=company_id, for_update=True)
    if record.is_terminal:
        raise InvalidStateTransition(
            "MaintenanceRecord", record.status, None, reason="the cycle is already closed",
        )
    return record


def _definition(company_id: int, parameter_name: str) -> ParameterDefinition:
    definition = (
        ParameterDefinition.query_for_company(company_id)
        .filter_by(name=parameter_name)
        .first()
    )
    if definition is None:
        raise NotFoundError("ParameterDefinition", parameter_name, company_id)
    return definition


def _trigger(record, inst, definition):
    NotificationService.evaluate_measurement(record, inst, definition)


# ── Measurement ──────────────────────────────────────────────────────────────


def record_measurement(company_id, record_id, parameter_name, value, actor="technician"):
    """
    Store this visit's measured value for one parameter.

    A not_necessary instance goes back to pending: the in-range verdict was
    about the previous value.

    Raises:
        InvalidStateTransition: closed cycle, or instance already applied /
            out_of_stock / not_adjustable.
        ValidationError: value is not a number.
    """
    try:
        value = to_decimal(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"value": "must be a number"}) from exc
    if value is None:
        raise ValidationError("A measurement value is required", details={"value": "is required"})

    record = _open_record(company_id, record_id)
    definition = _definition(company_id, parameter_name)

    inst = get_instance(record, parameter_name)
    if inst is None:
        inst, _ = upsert_instance(record, parameter_name, "pending", actor=actor)
    if inst.status in MEASUREMENT_LOCKED_STATUSES:
        raise InvalidStateTransition(
            "ParameterInstance", inst.status, inst.status,
            reason="the outcome is already recorded for this cycle",
        )

    value = round2(value)
    diff = {"current_value": {"old": inst.current_value, "new": value}}
    if inst.status == "not_necessary":
        diff["status"] = {"old": inst.status, "new": "pending"}
        inst.status = "pending"
        inst.status_actor = actor
        inst.status_changed_at = datetime.now(timezone.utc)
    inst.current_value = value

    write_audit(
        company_id=company_id,
        entity_type="parameter_instance",
        entity_id=inst.id,
        action="parameter_instance.measure",
        actor=actor,
        diff=diff,
    )
    db.session.commit()
    logger.info(
        "Measurement recorded record=%s parameter=%s value=%s",
        record.id, parameter_name, value,
        extra={"company_id": company_id},
    )

    _trigger(record, inst, definition)
    return inst


# ── Outcome ──────────────────────────────────────────────────────────────────


def _check_outcome(record, inst, definition, status, actor):
    """Raise unless *status* is allowed for the instance's current recommendation."""
    current_status = inst.status if inst is not None else "pending"
    if not validate_parameter_transition(current_status, status):
        raise InvalidStateTransition("ParameterInstance", current_status, status)

    if actor == "administration":
        if status != "not_adjustable":
            raise ValidationError(
                "Administration assistance may only mark a parameter as not_adjustable",
                details={"status": "must be not_adjustable"},
            )
        return None
    if status == "pending":
        return None

    current = inst.current_value if inst is not None else None
    rec = recommend(definition, current, record.client.pool_volume)
    if rec.error == MISSING_MEASUREMENT:
        raise InvalidStateTransition(
            "ParameterInstance", current_status, status, reason="no measurement recorded",
        )

    if status in ("applied", "out_of_stock"):
        require_adjustment(rec, definition.name)
        if not rec.is_adjustable:
            raise InvalidStateTransition("ParameterInstance", current_status, status, reason=rec.message)
    elif status == "not_necessary":
        if not rec.in_range:
            raise InvalidStateTransition(
                "ParameterInstance", current_status, status, reason="measurement is out of range",
            )
    elif status == "not_adjustable":
        require_adjustment(rec, definition.name)
        if rec.error != DIRECTION_UNSUPPORTED:
            raise InvalidStateTransition(
                "ParameterInstance", current_status, status,
                reason="this parameter can be adjusted on site",
            )
    return rec


def set_parameter_status(
    company_id,
    record_id,
    parameter_name,
    status,
    product=None,
    quantity=None,
    reason=None,
    actor="technician",
):
    """
    Record the outcome for one parameter of an open cycle.

    For applied/out_of_stock the recommended product and quantity are stored
    unless the caller supplies its own.

    Raises:
        ValidationError: unknown status or actor.
        InvalidStateTransition: closed cycle, terminal instance, or an outcome
            the current recommendation does not allow.
        IncompleteConfiguration: the definition cannot produce a dosage.
    """
    if status not in PARAMETER_STATUSES:
        raise ValidationError(
            f"status must be one of: {sorted(PARAMETER_STATUSES)}", details={"status": "invalid"},
        )
    if actor not in STATUS_ACTORS:
        raise ValidationError(f"Unknown actor: {actor}", details={"actor": "invalid"})

    record = _open_record(company_id, record_id)
    definition = _definition(company_id, parameter_name)
    inst = get_instance(record, parameter_name)

    rec = _check_outcome(record, inst, definition, status, actor)
    if rec is not None and status in ("applied", "out_of_stock"):
        product = product or rec.product
        quantity = round2(to_decimal(quantity)) if quantity is not None else rec.quantity

    inst, diff = upsert_instance(
        record, parameter_name, status,
        product=product, quantity=quantity, reason=reason, actor=actor,
    )
    write_audit(
        company_id=company_id,
        entity_type="parameter_instance",
        entity_id=inst.id,
        action="parameter_instance.assistance" if actor == "administration" else "parameter_instance.set_status",
        actor=actor,
        diff=diff,
    )
    db.session.commit()
    logger.info(
        "ParameterInstance %s → %s record=%s parameter=%s actor=%s",
        diff["status"]["old"], status, record.id, parameter_name, actor,
        extra={"company_id": company_id},
    )

    _trigger(record, inst, definition)
    return inst


def request_assistance(company_id, record_id, parameter_name, message=None):
    """
    Administration assistance: mark the parameter not_adjustable and open an
    'assistance' notification for the client.
    """
    inst = set_parameter_status(
        company_id, record_id, parameter_name, "not_adjustable",
        reason=message, actor="administration",
    )
    NotificationService.request_assistance(inst.record, parameter_name, message or "")
    return inst


# ── Record transitions ───────────────────────────────────────────────────────


def _close(record, status, actor, diff):
    old = record.status
    record.status = status
    record.closed_at = datetime.now(timezone.utc)
    record.closed_by = actor
    write_audit(
        company_id=record.company_id,
        entity_type="maintenance_record",
        entity_id=record.id,
        action="maintenance_record.conclude" if status == "concluded" else "maintenance_record.not_conclude",
        actor=actor,
        diff={"status": {"old": old, "new": status}, **diff},
    )
    db.session.commit()
    logger.info(
        "MaintenanceRecord %s: %s → %s by %s", record.id, old, status, actor,
        extra={"company_id": record.company_id},
    )
    return record


def conclude_record(company_id, record_id, actor="technician"):
    """
    Close a cycle as concluded.

    Every instance must carry a measurement; otherwise IncompleteParameters
    is raised and nothing is written. No successor cycle is opened.
    """
    record = get_scoped(MaintenanceRecord, record_id, company_id=company_id, for_update=True)
    if not validate_record_transition(record.status, "concluded"):
        raise InvalidStateTransition("MaintenanceRecord", record.status, "concluded")

    missing = [p.parameter_name for p in record.parameters if p.current_value is None]
    if missing:
        raise IncompleteParameters(record.id, missing)

    return _close(record, "concluded", actor, {})


def mark_not_concluded(company_id, record_id, actor="technician", reason=None):
    """Close a cycle the team could not finish. No measurement guard applies."""
    record = get_scoped(MaintenanceRecord, record_id, company_id=company_id, for_update=True)
    if not validate_record_transition(record.status, "not_concluded"):
        raise InvalidStateTransition("MaintenanceRecord", record.status, "not_concluded")
    return _close(record, "not_concluded", actor, {"reason": reason} if reason else {})
