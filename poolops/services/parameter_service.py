"""
Parameter Catalog Service: company-scoped ParameterDefinition CRUD.

Definitions are never hard-deleted while cycles reference them by name:
``delete_definition`` deactivates instead, so running cycles keep their
dosing data and the next reset simply stops seeding the parameter.
"""

import logging

from sqlalchemy.exc import IntegrityError

from poolops.core.exceptions import ConflictError, ValidationError
from poolops.models import db
from poolops.models.company import Client
from poolops.models.maintenance import ParameterInstance
from poolops.models.parameter import ParameterDefinition
from poolops.services.dosing import recommend
from poolops.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)


def list_definitions(company_id, active=None):
    q = ParameterDefinition.query_for_company(company_id)
    if active is not None:
        q = q.filter_by(active=active)
    return q.order_by(ParameterDefinition.name)


def get_definition(company_id, definition_id):
    return get_scoped(ParameterDefinition, definition_id, company_id=company_id)


def _name_taken(company_id, name, exclude_id=None):
    q = ParameterDefinition.query_for_company(company_id).filter_by(name=name)
    if exclude_id is not None:
        q = q.filter(ParameterDefinition.id != exclude_id)
    return q.first() is not None


def create_definition(company_id, cmd):
    """Create a definition from a ParameterDefinitionCommand."""
    name = cmd.fields["name"]
    if _name_taken(company_id, name):
        raise ConflictError("ParameterDefinition", "name", name)

    definition = ParameterDefinition(company_id=company_id, **cmd.fields)
    db.session.add(definition)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("ParameterDefinition", "name", name) from exc
    logger.info("ParameterDefinition created id=%s name=%s", definition.id, name,
                extra={"company_id": company_id})
    return definition


def update_definition(company_id, definition_id, cmd):
    """Partial update; only keys present in the command are written.

    Renaming is refused once instances exist under the old name, since
    instances refer to their definition by name.
    """
    definition = get_scoped(ParameterDefinition, definition_id, company_id=company_id)
    fields = dict(cmd.fields)

    new_name = fields.get("name")
    if new_name and new_name != definition.name:
        if _name_taken(company_id, new_name, exclude_id=definition.id):
            raise ConflictError("ParameterDefinition", "name", new_name)
        in_use = (
            ParameterInstance.query_for_company(company_id)
            .filter_by(parameter_name=definition.name)
            .first()
        )
        if in_use is not None:
            raise ConflictError("ParameterInstance", "parameter_name", definition.name)

    lo = fields.get("value_min", definition.value_min)
    hi = fields.get("value_max", definition.value_max)
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError("value_min must not exceed value_max", details={"value_min": "> value_max"})

    for key, value in fields.items():
        setattr(definition, key, value)
    db.session.commit()
    logger.info("ParameterDefinition updated id=%s fields=%s", definition.id, sorted(fields),
                extra={"company_id": company_id})
    return definition


def delete_definition(company_id, definition_id):
    """Deactivate a definition that cycles already use; delete it otherwise."""
    definition = get_scoped(ParameterDefinition, definition_id, company_id=company_id)
    in_use = (
        ParameterInstance.query_for_company(company_id)
        .filter_by(parameter_name=definition.name)
        .first()
    )
    if in_use is not None:
        definition.active = False
        db.session.commit()
        logger.info("ParameterDefinition deactivated id=%s (in use)", definition.id,
                    extra={"company_id": company_id})
        return False
    db.session.delete(definition)
    db.session.commit()
    logger.info("ParameterDefinition deleted id=%s", definition_id, extra={"company_id": company_id})
    return True


def preview_recommendation(company_id, definition_id, current, pool_volume=None, client_id=None):
    """Dosing preview for an arbitrary value.

    The pool volume comes from ``pool_volume`` or, failing that, the client's.
    """
    definition = get_scoped(ParameterDefinition, definition_id, company_id=company_id)
    if pool_volume is None and client_id is not None:
        pool_volume = get_scoped(Client, client_id, company_id=company_id).pool_volume
    return recommend(definition, current, pool_volume)
