"""
Weekly Schedule Service: (client, weekday) → team associations.

One association per client per weekday. Associating an already scheduled
slot moves it to the new team in place.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from poolops.core.exceptions import ConflictError, NotFoundError
from poolops.models import db
from poolops.models.company import Association, Client, Team
from poolops.services.commands import parse_weekday
from poolops.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)


def _slot(company_id, client_id, weekday):
    return (
        Association.query_for_company(company_id)
        .filter_by(client_id=client_id, weekday=weekday)
        .first()
    )


def associate(company_id, client_id, weekday, team_id):
    """Schedule a client on a weekday for a team (insert or move)."""
    weekday = parse_weekday(weekday)
    client = get_scoped(Client, client_id, company_id=company_id)
    team = get_scoped(Team, team_id, company_id=company_id)

    association = _slot(company_id, client.id, weekday)
    if association is None:
        association = Association(
            company_id=company_id, client_id=client.id, weekday=weekday, team_id=team.id,
        )
        db.session.add(association)
    else:
        association.team_id = team.id
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Association", "client_id,weekday", f"{client.id},{weekday}") from exc

    logger.info("Client %s scheduled on %s for team %s", client.id, weekday, team.id,
                extra={"company_id": company_id})
    return association


def dissociate(company_id, client_id, weekday):
    """Remove a client's slot for a weekday. Existing cycles are kept."""
    weekday = parse_weekday(weekday)
    client = get_scoped(Client, client_id, company_id=company_id)
    association = _slot(company_id, client.id, weekday)
    if association is None:
        raise NotFoundError("Association", f"{client.id}/{weekday}", company_id)
    db.session.delete(association)
    db.session.commit()
    logger.info("Client %s unscheduled from %s", client.id, weekday, extra={"company_id": company_id})


def list_clients_for_day(company_id, team_id, weekday):
    weekday = parse_weekday(weekday)
    team = get_scoped(Team, team_id, company_id=company_id)
    return (
        Association.query_for_company(company_id)
        .filter_by(team_id=team.id, weekday=weekday)
        .order_by(Association.id)
        .all()
    )


def list_unassigned_clients(company_id, weekday):
    """Clients with no team on the given weekday."""
    weekday = parse_weekday(weekday)
    scheduled = select(Association.client_id).where(
        Association.company_id == company_id, Association.weekday == weekday,
    )
    return (
        Client.query_for_company(company_id)
        .filter(Client.id.notin_(scheduled))
        .order_by(Client.name)
        .all()
    )
