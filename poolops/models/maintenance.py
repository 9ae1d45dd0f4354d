"""
PoolOps: Pool Maintenance Operations
Maintenance cycle domain models.

Models:
    - MaintenanceRecord:  one cycle (visit sheet) for a (client, weekday) pair
    - ParameterInstance:  one measured parameter inside a cycle

Architecture:
    Client ──1:N──▶ MaintenanceRecord ──1:N──▶ ParameterInstance

Lifecycle states:
    MaintenanceRecord:  pending → concluded | not_concluded   (both terminal)
    ParameterInstance:  pending → applied | out_of_stock | not_adjustable
                        | not_necessary                      (terminal per cycle)

Invariants:
    - at most one pending MaintenanceRecord per (client_id, weekday); held by
      a partial unique index so concurrent openers collide in the database
    - one ParameterInstance per (maintenance_record_id, parameter_name)
    - instances are never deleted; records are never reopened
"""

from datetime import datetime, timezone

from poolops.models import db
from poolops.models.base import CompanyModel


# ── Constants ────────────────────────────────────────────────────────────────

RECORD_STATUSES = {"pending", "concluded", "not_concluded"}

PARAMETER_STATUSES = {"pending", "applied", "out_of_stock", "not_adjustable", "not_necessary"}

# Statuses that lock the measurement of an instance for the rest of the cycle.
# not_necessary is not listed: a fresh measurement re-opens it for evaluation.
MEASUREMENT_LOCKED_STATUSES = {"applied", "out_of_stock", "not_adjustable"}

STATUS_ACTORS = {"technician", "administration"}

RECORD_TRANSITIONS = {
    "pending":       ["concluded", "not_concluded"],
    "concluded":     [],
    "not_concluded": [],
}

PARAMETER_TRANSITIONS = {
    "pending":        ["pending", "applied", "out_of_stock", "not_adjustable", "not_necessary"],
    "applied":        [],
    "out_of_stock":   [],
    "not_adjustable": [],
    "not_necessary":  [],
}


def validate_record_transition(old_status, new_status):
    """Return True if MaintenanceRecord status transition is valid."""
    return new_status in RECORD_TRANSITIONS.get(old_status, [])


def validate_parameter_transition(old_status, new_status):
    """Return True if ParameterInstance status transition is valid."""
    return new_status in PARAMETER_TRANSITIONS.get(old_status, [])


def _num(value):
    return str(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value else None


class MaintenanceRecord(CompanyModel):
    """One maintenance cycle for a client on a weekday."""

    __tablename__ = "maintenance_records"
    __table_args__ = (
        db.Index(
            "uq_maintenance_record_pending_slot",
            "client_id", "weekday",
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
        db.Index("ix_maintenance_records_company_status", "company_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    team_id = db.Column(
        db.Integer, db.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    weekday = db.Column(db.String(10), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.String(150), nullable=True)

    parameters = db.relationship(
        "ParameterInstance",
        back_populates="record",
        order_by="ParameterInstance.id",
        lazy="select",
    )
    client = db.relationship("Client", lazy="joined")

    @property
    def is_terminal(self):
        return not RECORD_TRANSITIONS.get(self.status)

    def to_dict(self, include_parameters=False):
        d = {
            "id": self.id,
            "company_id": self.company_id,
            "client_id": self.client_id,
            "team_id": self.team_id,
            "weekday": self.weekday,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "closed_at": _iso(self.closed_at),
            "closed_by": self.closed_by,
        }
        if include_parameters:
            d["parameters"] = [p.to_dict() for p in self.parameters]
        return d

    def __repr__(self):
        return f"<MaintenanceRecord {self.id}: client={self.client_id} {self.weekday} [{self.status}]>"


class ParameterInstance(CompanyModel):
    """
    Per-cycle measurement and outcome for one parameter.

    ``last_value`` is carried over from the previous concluded cycle,
    ``current_value`` is this visit's measurement. Together they form the
    last-vs-current trail shown on the maintenance sheet.
    """

    __tablename__ = "parameter_instances"
    __table_args__ = (
        db.UniqueConstraint(
            "maintenance_record_id", "parameter_name", name="uq_parameter_instance_record_name",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    maintenance_record_id = db.Column(
        db.Integer, db.ForeignKey("maintenance_records.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    parameter_name = db.Column(db.String(100), nullable=False)

    last_value = db.Column(db.Numeric(10, 2), nullable=True)
    current_value = db.Column(db.Numeric(10, 2), nullable=True)
    applied_product = db.Column(db.String(150), nullable=True)
    applied_quantity = db.Column(db.Numeric(10, 2), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="pending")
    reason_note = db.Column(db.Text, nullable=True)
    status_actor = db.Column(db.String(20), nullable=True, comment="technician | administration")
    status_changed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    record = db.relationship("MaintenanceRecord", back_populates="parameters")

    @property
    def is_terminal(self):
        return self.status != "pending"

    def to_dict(self):
        return {
            "id": self.id,
            "maintenance_record_id": self.maintenance_record_id,
            "parameter_name": self.parameter_name,
            "last_value": _num(self.last_value),
            "current_value": _num(self.current_value),
            "applied_product": self.applied_product,
            "applied_quantity": _num(self.applied_quantity),
            "status": self.status,
            "reason_note": self.reason_note,
            "status_actor": self.status_actor,
            "status_changed_at": _iso(self.status_changed_at),
        }

    def __repr__(self):
        return f"<ParameterInstance {self.id}: {self.parameter_name} [{self.status}]>"
