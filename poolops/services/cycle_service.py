"""
Maintenance Cycle Service: record store and parameter instance tracker.

Business logic for:
    - Opening a cycle:       fetch-or-create the pending record for a
                             (client, weekday), seeded from active definitions
    - Carry-over:            last_value ← previous concluded cycle's current_value
    - Instance upsert:       keyed by (record_id, parameter_name), with the
                             not_adjustable / pending value rules
    - Cycle sheet:           record + joined definition fields + live dosing
    - Day listing/progress:  per team and weekday

Status transitions are guarded in ``maintenance_lifecycle``; this module only
reads and writes rows.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from poolops.core.exceptions import ConflictError, ValidationError
from poolops.models import db
from poolops.models.audit import write_audit
from poolops.models.company import Association, Client, Team
from poolops.models.maintenance import MaintenanceRecord, ParameterInstance
from poolops.models.parameter import ParameterDefinition
from poolops.services.commands import parse_weekday
from poolops.services.dosing import recommend
from poolops.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)

# Insert attempts for open_cycle; each failed insert is followed by a re-read.
_OPEN_ATTEMPTS = 2


# ── Lookups ──────────────────────────────────────────────────────────────────


def find_pending_record(company_id: int, client_id: int, weekday: str) -> MaintenanceRecord | None:
    """Return the open cycle for a (client, weekday) pair, if any."""
    return db.session.execute(
        select(MaintenanceRecord).where(
            MaintenanceRecord.company_id == company_id,
            MaintenanceRecord.client_id == client_id,
            MaintenanceRecord.weekday == weekday,
            MaintenanceRecord.status == "pending",
        )
    ).scalar_one_or_none()


def latest_record(company_id: int, client_id: int, weekday: str, *, status: str | None = None):
    """Most recent record for the pair (newest created_at, then highest id)."""
    stmt = select(MaintenanceRecord).where(
        MaintenanceRecord.company_id == company_id,
        MaintenanceRecord.client_id == client_id,
        MaintenanceRecord.weekday == weekday,
    )
    if status:
        stmt = stmt.where(MaintenanceRecord.status == status)
    stmt = stmt.order_by(MaintenanceRecord.created_at.desc(), MaintenanceRecord.id.desc()).limit(1)
    return db.session.execute(stmt).scalar_one_or_none()


def active_definitions(company_id: int) -> list[ParameterDefinition]:
    return (
        ParameterDefinition.query_for_company(company_id)
        .filter_by(active=True)
        .order_by(ParameterDefinition.name)
        .all()
    )


def definitions_by_name(company_id: int) -> dict[str, ParameterDefinition]:
    rows = ParameterDefinition.query_for_company(company_id).all()
    return {d.name: d for d in rows}


def get_instance(record: MaintenanceRecord, parameter_name: str) -> ParameterInstance | None:
    return ParameterInstance.query.filter_by(
        company_id=record.company_id,
        maintenance_record_id=record.id,
        parameter_name=parameter_name,
    ).first()


def _scheduled_team(company_id: int, client_id: int, weekday: str) -> int:
    association = (
        Association.query_for_company(company_id)
        .filter_by(client_id=client_id, weekday=weekday)
        .first()
    )
    if association is None:
        raise ValidationError(
            f"Client {client_id} is not scheduled on {weekday}",
            details={"weekday": "no team assigned"},
        )
    return association.team_id


# ── Open cycle ───────────────────────────────────────────────────────────────


def seed_instances(record: MaintenanceRecord, predecessor: MaintenanceRecord | None) -> list[ParameterInstance]:
    """Create one pending instance per active definition, carrying last values."""
    carried = {}
    if predecessor is not None:
        carried = {p.parameter_name: p.current_value for p in predecessor.parameters}

    created = []
    for definition in active_definitions(record.company_id):
        inst = ParameterInstance(
            company_id=record.company_id,
            maintenance_record_id=record.id,
            parameter_name=definition.name,
            last_value=carried.get(definition.name),
            status="pending",
        )
        db.session.add(inst)
        created.append(inst)
    db.session.flush()
    return created


def open_cycle(company_id: int, client_id: int, weekday: str) -> MaintenanceRecord:
    """Fetch-or-create the pending maintenance record for a (client, weekday).

    Race-safe: the pending slot is guarded by a partial unique index. When a
    concurrent request wins the insert, the IntegrityError is absorbed and
    the winner's row is returned.

    Raises:
        TenantMismatch / NotFoundError: client outside the company.
        ValidationError: bad weekday, or client not scheduled that day.
        ConflictError: the slot stayed contested after the retry.
    """
    weekday = parse_weekday(weekday)
    client = get_scoped(Client, client_id, company_id=company_id)

    existing = find_pending_record(company_id, client.id, weekday)
    if existing is not None:
        return existing

    team_id = _scheduled_team(company_id, client.id, weekday)

    for attempt in range(1, _OPEN_ATTEMPTS + 1):
        try:
            with db.session.begin_nested():
                record = MaintenanceRecord(
                    company_id=company_id,
                    client_id=client.id,
                    team_id=team_id,
                    weekday=weekday,
                    status="pending",
                )
                db.session.add(record)
                db.session.flush()
                predecessor = latest_record(company_id, client.id, weekday, status="concluded")
                instances = seed_instances(record, predecessor)
        except IntegrityError:
            logger.info(
                "open_cycle race on client=%s weekday=%s (attempt %s); re-reading",
                client.id, weekday, attempt,
                extra={"company_id": company_id},
            )
            winner = find_pending_record(company_id, client.id, weekday)
            if winner is not None:
                return winner
            continue

        write_audit(
            company_id=company_id,
            entity_type="maintenance_record",
            entity_id=record.id,
            action="maintenance_record.open",
            diff={"parameters": len(instances), "predecessor_id": predecessor.id if predecessor else None},
        )
        db.session.commit()
        logger.info(
            "MaintenanceRecord opened id=%s client=%s weekday=%s parameters=%s",
            record.id, client.id, weekday, len(instances),
            extra={"company_id": company_id},
        )
        return record

    raise ConflictError("MaintenanceRecord", "client_id,weekday", f"{client.id},{weekday}")


# ── Instance upsert ──────────────────────────────────────────────────────────


def upsert_instance(
    record: MaintenanceRecord,
    parameter_name: str,
    status: str,
    *,
    product=None,
    quantity=None,
    reason: str | None = None,
    actor: str = "technician",
) -> tuple[ParameterInstance, dict]:
    """Insert or update the instance keyed by (record, parameter_name).

    Value rules:
      - ``not_adjustable`` keeps whatever current_value is stored
      - ``pending`` always clears current_value (re-measure)

    Does not commit. Returns the instance and an old→new diff for auditing.
    """
    inst = get_instance(record, parameter_name)
    if inst is None:
        inst = ParameterInstance(
            company_id=record.company_id,
            maintenance_record_id=record.id,
            parameter_name=parameter_name,
            status="pending",
        )
        db.session.add(inst)

    diff = {"status": {"old": inst.status, "new": status}}
    if status == "pending":
        diff["current_value"] = {"old": inst.current_value, "new": None}
        inst.current_value = None
        inst.applied_product = None
        inst.applied_quantity = None
    elif status in ("applied", "out_of_stock"):
        inst.applied_product = product
        inst.applied_quantity = quantity
        diff["applied_product"] = product
        diff["applied_quantity"] = quantity

    inst.status = status
    inst.reason_note = reason
    inst.status_actor = actor
    inst.status_changed_at = datetime.now(timezone.utc)
    db.session.flush()
    return inst, diff


# ── Cycle sheet ──────────────────────────────────────────────────────────────

_SHEET_DEFINITION_FIELDS = (
    "unit", "value_min", "value_max", "value_target",
    "product_increase", "product_decrease", "reference_volume",
)


def build_sheet(record: MaintenanceRecord) -> dict:
    """Record + per-parameter definition fields and live recommendation."""
    client = record.client
    definitions = definitions_by_name(record.company_id)
    rows = []
    for inst in record.parameters:
        row = inst.to_dict()
        definition = definitions.get(inst.parameter_name)
        row["definition"] = (
            {k: v for k, v in definition.to_dict().items() if k in _SHEET_DEFINITION_FIELDS}
            if definition else None
        )
        if definition is not None and inst.current_value is not None:
            row["recommendation"] = recommend(definition, inst.current_value, client.pool_volume).to_dict()
        else:
            row["recommendation"] = None
        rows.append(row)
    return {
        "record": record.to_dict(),
        "client": client.to_dict(),
        "read_only": record.is_terminal,
        "parameters": rows,
    }


def get_cycle_sheet(company_id: int, client_id: int, weekday: str) -> dict:
    """Fetch-or-create the current cycle and render its maintenance sheet.

    When no pending cycle exists and the pair's latest cycle was concluded,
    that cycle is returned read-only; the next one is opened by the weekly
    reset. A pair with no history, or whose latest cycle was not concluded,
    gets a fresh cycle here.
    """
    weekday = parse_weekday(weekday)
    client = get_scoped(Client, client_id, company_id=company_id)
    record = find_pending_record(company_id, client.id, weekday)
    if record is None:
        latest = latest_record(company_id, client.id, weekday)
        if latest is not None and latest.status == "concluded":
            record = latest
    if record is None:
        record = open_cycle(company_id, client.id, weekday)
    return build_sheet(record)


# ── Day listing ──────────────────────────────────────────────────────────────


def list_day_cycles(company_id: int, team_id: int, weekday: str) -> list[dict]:
    """Clients a team visits on a weekday, each with its latest cycle (or None)."""
    weekday = parse_weekday(weekday)
    team = get_scoped(Team, team_id, company_id=company_id)
    associations = (
        Association.query_for_company(company_id)
        .filter_by(team_id=team.id, weekday=weekday)
        .order_by(Association.id)
        .all()
    )
    items = []
    for a in associations:
        record = latest_record(company_id, a.client_id, weekday)
        items.append({
            "client": a.client.to_dict(),
            "record": record.to_dict() if record else None,
            "status": record.status if record else None,
        })
    return items


def day_progress(company_id: int, team_id: int, weekday: str) -> dict:
    """Count the team's clients for the day by cycle status."""
    items = list_day_cycles(company_id, team_id, weekday)
    counts = {"pending": 0, "concluded": 0, "not_concluded": 0, "not_started": 0}
    for item in items:
        counts[item["status"] or "not_started"] += 1
    total = len(items)
    done = counts["concluded"] + counts["not_concluded"]
    return {
        "team_id": team_id,
        "weekday": parse_weekday(weekday),
        "total": total,
        "by_status": counts,
        "completion_pct": round(done / total * 100, 1) if total else 0,
    }
