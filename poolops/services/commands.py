"""
Typed command values for the maintenance workflow.

Blueprints hand raw JSON to ``Command.from_payload``; anything malformed
raises ValidationError with a field-level ``details`` map before a single
row is touched. Services only ever see these frozen dataclasses.

Usage:
    cmd = OutcomeCommand.from_payload(request.get_json(silent=True))
    set_parameter_status(company_id, record_id, name, cmd.status, product=cmd.product, ...)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from poolops.core.exceptions import ValidationError
from poolops.models.company import WEEKDAYS
from poolops.models.maintenance import PARAMETER_STATUSES
from poolops.models.notification import NOTIFICATION_STATUSES
from poolops.services.dosing import to_decimal

# Outcomes a technician may submit; "pending" is the re-measure path.
OUTCOME_STATUSES = PARAMETER_STATUSES

_DEFINITION_NUMERIC_FIELDS = (
    "value_min", "value_max", "value_target",
    "dosage_increase", "dosage_decrease",
    "increment_increase", "increment_decrease",
    "reference_volume", "alert_above",
)
_DEFINITION_TEXT_FIELDS = ("product_increase", "product_decrease", "unit", "alert_topic")


def _payload(data) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _text(data: dict, key: str, errors: dict, *, required=False, max_len=None) -> str | None:
    raw = data.get(key)
    if raw is None:
        if required:
            errors[key] = "is required"
        return None
    if not isinstance(raw, str):
        errors[key] = "must be a string"
        return None
    value = raw.strip()
    if required and not value:
        errors[key] = "is required"
        return None
    if max_len and len(value) > max_len:
        errors[key] = f"must be ≤ {max_len} characters"
        return None
    return value or None


def _decimal(data: dict, key: str, errors: dict, *, required=False) -> Decimal | None:
    try:
        value = to_decimal(data.get(key))
    except ValueError:
        errors[key] = "must be a number"
        return None
    if value is None and required:
        errors[key] = "is required"
    return value


def _int(data: dict, key: str, errors: dict, *, required=False) -> int | None:
    raw = data.get(key)
    if raw is None or raw == "":
        if required:
            errors[key] = "is required"
        return None
    if isinstance(raw, bool):
        errors[key] = "must be an integer"
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        errors[key] = "must be an integer"
        return None


def parse_weekday(value) -> str:
    """Normalise a weekday name; raise ValidationError when unknown."""
    if not isinstance(value, str) or value.strip().lower() not in WEEKDAYS:
        raise ValidationError(
            f"weekday must be one of: {', '.join(WEEKDAYS)}",
            details={"weekday": "invalid"},
        )
    return value.strip().lower()


def _raise_if(errors: dict, message: str) -> None:
    if errors:
        raise ValidationError(message, details=errors)


def parse_actor(data, default: str) -> str:
    """Actor name from a payload; falls back to *default* when absent."""
    data = _payload(data)
    errors: dict = {}
    actor = _text(data, "actor", errors, max_len=150)
    _raise_if(errors, "Invalid actor")
    return actor or default


@dataclass(frozen=True)
class OpenCycleCommand:
    client_id: int
    weekday: str

    @classmethod
    def from_payload(cls, data) -> OpenCycleCommand:
        data = _payload(data)
        errors: dict = {}
        client_id = _int(data, "client_id", errors, required=True)
        _raise_if(errors, "Invalid cycle request")
        return cls(client_id=client_id, weekday=parse_weekday(data.get("weekday")))


@dataclass(frozen=True)
class MeasurementCommand:
    value: Decimal

    @classmethod
    def from_payload(cls, data) -> MeasurementCommand:
        data = _payload(data)
        errors: dict = {}
        value = _decimal(data, "value", errors, required=True)
        _raise_if(errors, "Invalid measurement")
        return cls(value=value)


@dataclass(frozen=True)
class OutcomeCommand:
    status: str
    product: str | None = None
    quantity: Decimal | None = None
    reason: str | None = None

    @classmethod
    def from_payload(cls, data) -> OutcomeCommand:
        data = _payload(data)
        errors: dict = {}
        status = _text(data, "status", errors, required=True)
        if status and status not in OUTCOME_STATUSES:
            errors["status"] = f"must be one of: {sorted(OUTCOME_STATUSES)}"
        product = _text(data, "product", errors, max_len=150)
        quantity = _decimal(data, "quantity", errors)
        if quantity is not None and quantity < 0:
            errors["quantity"] = "must not be negative"
        reason = _text(data, "reason", errors, max_len=2000)
        _raise_if(errors, "Invalid parameter outcome")
        return cls(status=status, product=product, quantity=quantity, reason=reason)


@dataclass(frozen=True)
class ParameterDefinitionCommand:
    """Create/update payload for the parameter catalog.

    ``fields`` only holds keys present in the payload, so partial updates
    leave the other columns alone.
    """
    fields: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data, *, partial=False) -> ParameterDefinitionCommand:
        data = _payload(data)
        errors: dict = {}
        fields: dict = {}

        if "name" in data or not partial:
            name = _text(data, "name", errors, required=True, max_len=100)
            if name:
                fields["name"] = name
        for key in _DEFINITION_TEXT_FIELDS:
            if key in data:
                fields[key] = _text(data, key, errors, max_len=150)
        for key in _DEFINITION_NUMERIC_FIELDS:
            if key in data:
                fields[key] = _decimal(data, key, errors)
        if "active" in data:
            if not isinstance(data["active"], bool):
                errors["active"] = "must be a boolean"
            else:
                fields["active"] = data["active"]

        for key in ("reference_volume", "increment_increase", "increment_decrease"):
            if fields.get(key) is not None and fields[key] <= 0:
                errors[key] = "must be greater than zero"

        lo, hi = fields.get("value_min"), fields.get("value_max")
        if lo is not None and hi is not None and lo > hi:
            errors["value_min"] = "must not exceed value_max"

        _raise_if(errors, "Invalid parameter definition")
        return cls(fields=fields)


@dataclass(frozen=True)
class NotificationUpdateCommand:
    status: str | None = None
    assignee: str | None = None

    @classmethod
    def from_payload(cls, data) -> NotificationUpdateCommand:
        data = _payload(data)
        errors: dict = {}
        status = _text(data, "status", errors)
        if status and status not in NOTIFICATION_STATUSES:
            errors["status"] = f"must be one of: {sorted(NOTIFICATION_STATUSES)}"
        assignee = _text(data, "assignee", errors, max_len=150)
        if not status and not assignee:
            errors["status"] = "status or assignee is required"
        _raise_if(errors, "Invalid notification update")
        return cls(status=status, assignee=assignee)


@dataclass(frozen=True)
class ReportCommand:
    client_id: int
    subject: str
    message: str
    attachments: tuple[str, ...] = ()
    extra_service_value: Decimal | None = None

    @classmethod
    def from_payload(cls, data) -> ReportCommand:
        data = _payload(data)
        errors: dict = {}
        client_id = _int(data, "client_id", errors, required=True)
        subject = _text(data, "subject", errors, max_len=300) or "Anomaly report"
        message = _text(data, "message", errors, required=True)
        raw_attachments = data.get("attachments") or []
        if not isinstance(raw_attachments, list) or not all(isinstance(a, str) for a in raw_attachments):
            errors["attachments"] = "must be a list of URIs"
            raw_attachments = []
        extra = _decimal(data, "extra_service_value", errors)
        if extra is not None and extra < 0:
            errors["extra_service_value"] = "must not be negative"
        _raise_if(errors, "Invalid anomaly report")
        return cls(
            client_id=client_id,
            subject=subject,
            message=message,
            attachments=tuple(raw_attachments),
            extra_service_value=extra,
        )


@dataclass(frozen=True)
class AssociationCommand:
    client_id: int
    weekday: str
    team_id: int

    @classmethod
    def from_payload(cls, data) -> AssociationCommand:
        data = _payload(data)
        errors: dict = {}
        client_id = _int(data, "client_id", errors, required=True)
        team_id = _int(data, "team_id", errors, required=True)
        _raise_if(errors, "Invalid schedule entry")
        return cls(client_id=client_id, weekday=parse_weekday(data.get("weekday")), team_id=team_id)


@dataclass(frozen=True)
class CloseRecordCommand:
    """Conclude / not-concluded payload. ``actor`` is the name stored in closed_by."""
    actor: str = "technician"
    reason: str | None = None

    @classmethod
    def from_payload(cls, data, *, default_actor="technician") -> CloseRecordCommand:
        data = _payload(data)
        errors: dict = {}
        actor = _text(data, "actor", errors, max_len=150) or default_actor
        reason = _text(data, "reason", errors, max_len=2000)
        _raise_if(errors, "Invalid cycle closing")
        return cls(actor=actor, reason=reason)
