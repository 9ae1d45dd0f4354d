"""
Company-scoped query helpers.

Every get-by-id in the service layer MUST go through these helpers instead of
Model.query.get(pk) or db.session.get(Model, pk). A bare .get() bypasses
company isolation.

Usage:
    record = get_scoped(MaintenanceRecord, record_id, company_id=company_id)

    # Row lock for read-modify-write paths
    record = get_scoped(MaintenanceRecord, record_id, company_id=company_id, for_update=True)

    # When None is an acceptable outcome
    client = get_scoped_or_none(Client, client_id, company_id=company_id)

A row that exists under another company raises TenantMismatch; a row that
does not exist at all raises NotFoundError. Both map to HTTP 404.
"""

import logging

from sqlalchemy import select

from poolops.core.exceptions import NotFoundError, TenantMismatch
from poolops.models import db

logger = logging.getLogger(__name__)


def get_scoped(model, pk: int, *, company_id: int, for_update: bool = False):
    """Fetch a single entity by PK within a company.

    Args:
        model: SQLAlchemy model class with ``id`` and ``company_id`` columns.
        pk: Primary key value to look up.
        company_id: Mandatory scope.
        for_update: Lock the row (SELECT ... FOR UPDATE) where the dialect
            supports it.

    Raises:
        ValueError: If company_id is missing or the model is not company-scoped.
        TenantMismatch: If the row belongs to another company.
        NotFoundError: If the row does not exist.
    """
    if company_id is None:
        raise ValueError(
            f"{model.__name__} id={pk} requires company_id. "
            "Unscoped lookups are forbidden: they bypass tenant isolation."
        )
    if not hasattr(model, "company_id"):
        raise ValueError(f"{model.__name__} has no company_id column; refusing unscoped lookup.")

    stmt = select(model).where(model.id == pk, model.company_id == company_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = db.session.execute(stmt).scalar_one_or_none()
    if result is not None:
        return result

    owner = db.session.execute(
        select(model.company_id).where(model.id == pk)
    ).scalar_one_or_none()
    if owner is not None:
        logger.warning(
            "Cross-company access blocked: %s id=%s owner=%s requested_by=%s",
            model.__name__, pk, owner, company_id,
            extra={"company_id": company_id, "event_type": "tenant_mismatch"},
        )
        raise TenantMismatch(model.__name__, pk, company_id)

    logger.debug("get_scoped: %s id=%s not found in company %s", model.__name__, pk, company_id)
    raise NotFoundError(resource=model.__name__, resource_id=pk, company_id=company_id)


def get_scoped_or_none(model, pk: int, *, company_id: int):
    """Like get_scoped but returns None when the row is missing.

    Cross-company rows still raise TenantMismatch.
    """
    try:
        return get_scoped(model, pk, company_id=company_id)
    except TenantMismatch:
        raise
    except NotFoundError:
        return None
