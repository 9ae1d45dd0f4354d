"""Standardised API error responses.

Usage
-----
    from poolops.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Cycle not found")
    return api_error(E.VALIDATION_REQUIRED, "company_id is required")

Service exceptions never need a try/except in a view: the handlers installed
by ``register_error_handlers`` translate them into the same envelope.
"""

from __future__ import annotations

import logging

from flask import jsonify, request

from poolops.core.exceptions import (
    ConflictError,
    IncompleteConfiguration,
    IncompleteParameters,
    InvalidStateTransition,
    NotFoundError,
    ResetError,
    ValidationError,
)
from poolops.models import db

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / state – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    INCOMPLETE_PARAMETERS = "ERR_INCOMPLETE_PARAMETERS"

    # Dosing configuration – HTTP 422
    INCOMPLETE_CONFIGURATION = "ERR_INCOMPLETE_CONFIGURATION"

    # Server – HTTP 500
    RESET_FAILED = "ERR_RESET_FAILED"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.INCOMPLETE_PARAMETERS: 409,
    E.INCOMPLETE_CONFIGURATION: 422,
    E.RESET_FAILED: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for the UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, missing parameters, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


# ── App-level handlers ────────────────────────────────────────────────

def register_error_handlers(app):
    """Map the service exception hierarchy onto HTTP responses.

    Every handler rolls the session back first so a half-built unit of work
    never leaks into the next request.
    """

    @app.errorhandler(ValidationError)
    def _validation(e):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(NotFoundError)
    def _not_found(e):
        # TenantMismatch lands here too: never confirm another company's row.
        db.session.rollback()
        return api_error(E.NOT_FOUND, f"{e.resource} not found")

    @app.errorhandler(ConflictError)
    def _conflict(e):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(e), details={"field": e.field})

    @app.errorhandler(IncompleteConfiguration)
    def _incomplete_configuration(e):
        db.session.rollback()
        return api_error(
            E.INCOMPLETE_CONFIGURATION, str(e),
            details={"parameter": e.parameter_name, "missing": e.missing},
        )

    @app.errorhandler(IncompleteParameters)
    def _incomplete_parameters(e):
        db.session.rollback()
        return api_error(E.INCOMPLETE_PARAMETERS, str(e), details={"missing": e.missing})

    @app.errorhandler(InvalidStateTransition)
    def _invalid_transition(e):
        db.session.rollback()
        return api_error(
            E.CONFLICT_STATE, str(e),
            details={"entity": e.entity, "current": e.current_status, "target": e.target_status},
        )

    @app.errorhandler(ResetError)
    def _reset_failed(e):
        db.session.rollback()
        logger.error("Reset failed company=%s step=%s", e.company_id, e.step,
                     extra={"company_id": e.company_id})
        return api_error(E.RESET_FAILED, "Reset failed; no changes were kept", details={"step": e.step})

    @app.errorhandler(404)
    def _route_not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def _rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def _server_error(e):
        db.session.rollback()
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
