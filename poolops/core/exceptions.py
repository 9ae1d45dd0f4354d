"""
Platform-wide exception hierarchy.

Services raise these types; the app-level error handlers registered in
``poolops.utils.errors`` turn them into JSON responses with a consistent
status code, so blueprints never need their own try/except ladders.

Usage:
    from poolops.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="MaintenanceRecord", resource_id=42)
    raise ValidationError("weekday is required", details={"weekday": "missing"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Args:
        resource: Human-readable model/entity name (e.g. "Client").
        resource_id: The PK or natural key that was looked up.
        company_id: Optional: the scope that was enforced. For logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        company_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.company_id = company_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if company_id is not None:
            msg += f" (company={company_id})"
        super().__init__(msg)


class TenantMismatch(NotFoundError):
    """Raised when an entity exists but belongs to a different company.

    Subclasses NotFoundError so the HTTP layer answers 404 for both cases and
    never confirms that another company's row exists. The distinct type lets
    services and logs tell the two apart.
    """

    def __init__(self, resource: str, resource_id: int | str | None, company_id: int) -> None:
        super().__init__(resource, resource_id, company_id)
        self.args = (f"{resource} id={resource_id} does not belong to company {company_id}",)


class ValidationError(Exception):
    """Raised when a payload or argument is malformed or missing a field.

    Always raised before any write happens.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with a unique constraint.

    Args:
        resource: Model name.
        field: The unique field (or composite key) that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class IncompleteConfiguration(Exception):
    """Raised when a ParameterDefinition lacks the data the dosing math needs."""

    def __init__(self, parameter_name: str, missing: list[str] | None = None) -> None:
        self.parameter_name = parameter_name
        self.missing = missing or []
        msg = f"Parameter '{parameter_name}' has an incomplete dosing configuration"
        if self.missing:
            msg += f": {', '.join(self.missing)}"
        super().__init__(msg)


class InvalidStateTransition(Exception):
    """Raised when a transition is not allowed from the entity's current status.

    Args:
        entity: Model name ("MaintenanceRecord", "ParameterInstance", ...).
        current: Current status of the entity.
        target: Requested status.
        reason: Optional extra explanation for UI messaging.
    """

    def __init__(
        self,
        entity: str,
        current: str,
        target: str | None,
        reason: str | None = None,
    ) -> None:
        self.entity = entity
        self.current_status = current
        self.target_status = target
        self.reason = reason
        msg = f"Cannot move {entity} from '{current}' to '{target}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class IncompleteParameters(InvalidStateTransition):
    """Raised when a record is concluded while some parameters lack a measurement."""

    def __init__(self, record_id: int, missing: list[str]) -> None:
        self.record_id = record_id
        self.missing = missing
        super().__init__("MaintenanceRecord", "pending", "concluded")
        self.args = (f"cannot conclude: {len(missing)} parameters missing",)


class ResetError(Exception):
    """Raised when a company reset aborts. Nothing from the reset was kept.

    Args:
        company_id: Company whose reset failed.
        step: Name of the step that failed.
    """

    def __init__(self, company_id: int, step: str, cause: Exception | None = None) -> None:
        self.company_id = company_id
        self.step = step
        self.cause = cause
        msg = f"Reset of company {company_id} failed at step '{step}'"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
