"""
Reset Service: company-wide roll-forward into the next maintenance cycle.

For every (client, weekday) association of a company, the most recent
concluded MaintenanceRecord is used as the template for a new pending
record. The whole company moves forward in one transaction or not at all:
a failure in any step rolls everything back and raises ResetError naming
that step.

Steps:
    select               lock the latest concluded record per pair
    create_record        new pending record (team from the current association)
    copy_parameters      last_value ← old current_value, everything else cleared
    seed_new_parameters  instances for definitions activated since
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select

from poolops.core.exceptions import NotFoundError, ResetError
from poolops.models import db
from poolops.models.audit import write_audit
from poolops.models.company import Association, Company
from poolops.models.maintenance import MaintenanceRecord, ParameterInstance
from poolops.services.cycle_service import active_definitions, find_pending_record

logger = logging.getLogger(__name__)

NOTHING_TO_RESET = "nothing_to_reset"
RESET_DONE = "reset"


@dataclass
class ResetResult:
    company_id: int
    status: str
    created_record_ids: list[int] = field(default_factory=list)
    skipped_pairs: list[tuple[int, str]] = field(default_factory=list)

    @property
    def created(self) -> int:
        return len(self.created_record_ids)

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "status": self.status,
            "created": self.created,
            "created_record_ids": self.created_record_ids,
            "skipped": [{"client_id": c, "weekday": w} for c, w in self.skipped_pairs],
        }


def _latest_concluded(company_id: int, client_id: int, weekday: str):
    stmt = (
        select(MaintenanceRecord)
        .where(
            MaintenanceRecord.company_id == company_id,
            MaintenanceRecord.client_id == client_id,
            MaintenanceRecord.weekday == weekday,
            MaintenanceRecord.status == "concluded",
        )
        .order_by(MaintenanceRecord.created_at.desc(), MaintenanceRecord.id.desc())
        .limit(1)
        .with_for_update()
    )
    return db.session.execute(stmt).scalar_one_or_none()


def select_templates(company_id: int) -> list[tuple[Association, MaintenanceRecord]]:
    """Latest concluded record per associated (client, weekday), locked."""
    associations = (
        Association.query_for_company(company_id)
        .order_by(Association.client_id, Association.weekday)
        .all()
    )
    pairs = []
    for association in associations:
        record = _latest_concluded(company_id, association.client_id, association.weekday)
        if record is not None:
            pairs.append((association, record))
    return pairs


def create_successor(association: Association, template: MaintenanceRecord) -> MaintenanceRecord:
    record = MaintenanceRecord(
        company_id=template.company_id,
        client_id=template.client_id,
        team_id=association.team_id,
        weekday=template.weekday,
        status="pending",
    )
    db.session.add(record)
    db.session.flush()
    return record


def copy_parameters(template: MaintenanceRecord, record: MaintenanceRecord) -> set[str]:
    copied = set()
    for old in template.parameters:
        db.session.add(ParameterInstance(
            company_id=record.company_id,
            maintenance_record_id=record.id,
            parameter_name=old.parameter_name,
            last_value=old.current_value,
            current_value=None,
            applied_product=None,
            applied_quantity=None,
            status="pending",
        ))
        copied.add(old.parameter_name)
    db.session.flush()
    return copied


def seed_new_parameters(record: MaintenanceRecord, definitions, copied: set[str]) -> int:
    added = 0
    for definition in definitions:
        if definition.name in copied:
            continue
        db.session.add(ParameterInstance(
            company_id=record.company_id,
            maintenance_record_id=record.id,
            parameter_name=definition.name,
            last_value=None,
            status="pending",
        ))
        added += 1
    db.session.flush()
    return added


def reset_company(company_id: int, actor: str = "administration") -> ResetResult:
    """
    Open the next cycle for every client whose latest cycle is concluded.

    Pairs that already have a pending record are skipped. Returns a
    ResetResult with status ``nothing_to_reset`` when the company has no
    concluded records at all.

    Raises:
        NotFoundError: unknown company.
        ResetError: any step failed; the transaction was rolled back.
    """
    if db.session.get(Company, company_id) is None:
        raise NotFoundError("Company", company_id)

    result = ResetResult(company_id=company_id, status=RESET_DONE)
    step = "select"
    try:
        templates = select_templates(company_id)
        if not templates:
            db.session.rollback()
            logger.info("Reset: nothing to reset", extra={"company_id": company_id})
            result.status = NOTHING_TO_RESET
            return result

        definitions = active_definitions(company_id)
        for association, template in templates:
            step = "select"
            if find_pending_record(company_id, template.client_id, template.weekday) is not None:
                result.skipped_pairs.append((template.client_id, template.weekday))
                continue

            step = "create_record"
            record = create_successor(association, template)
            step = "copy_parameters"
            copied = copy_parameters(template, record)
            step = "seed_new_parameters"
            seed_new_parameters(record, definitions, copied)
            result.created_record_ids.append(record.id)

        step = "audit"
        write_audit(
            company_id=company_id,
            entity_type="company",
            entity_id=company_id,
            action="company.reset",
            actor=actor,
            diff={"created": result.created_record_ids, "skipped": len(result.skipped_pairs)},
        )
        step = "commit"
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        logger.exception(
            "Reset failed at step '%s'", step, extra={"company_id": company_id},
        )
        raise ResetError(company_id, step, exc) from exc

    logger.info(
        "Reset complete: %s created, %s skipped",
        result.created, len(result.skipped_pairs),
        extra={"company_id": company_id},
    )
    return result
