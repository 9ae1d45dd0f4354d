"""
PoolOps: Pool Maintenance Operations
Notification domain model.

Models:
    - Notification: an alert for the administration about one client

Sources:
    threshold   raised automatically when a measurement crosses an alert limit
    assistance  raised when a technician asks the office to handle a parameter
    report      free-form anomaly report filed from the field

Lifecycle:
    pending → in_progress → resolved   |   pending → resolved

At most one open (not resolved) notification exists per (client_id, topic).
"""

from datetime import datetime, timezone

from poolops.models import db
from poolops.models.base import CompanyModel


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_STATUSES = {"pending", "in_progress", "resolved"}
NOTIFICATION_SOURCES = {"threshold", "assistance", "report"}

NOTIFICATION_TRANSITIONS = {
    "pending":     ["in_progress", "resolved"],
    "in_progress": ["resolved"],
    "resolved":    [],
}


def validate_notification_transition(old_status, new_status):
    """Return True if Notification status transition is valid."""
    return new_status in NOTIFICATION_TRANSITIONS.get(old_status, [])


class Notification(CompanyModel):
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index(
            "uq_notification_open_client_topic",
            "client_id", "topic",
            unique=True,
            sqlite_where=db.text("status != 'resolved'"),
            postgresql_where=db.text("status != 'resolved'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    topic = db.Column(db.String(100), nullable=False)
    subject = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    source = db.Column(db.String(20), nullable=False, default="threshold")
    status = db.Column(db.String(20), nullable=False, default="pending")
    assignee = db.Column(db.String(150), nullable=True)
    attachments = db.Column(db.JSON, default=list)
    extra_service_value = db.Column(db.Numeric(10, 2), nullable=True)

    # Link to the cycle that raised it, when there is one
    maintenance_record_id = db.Column(
        db.Integer, db.ForeignKey("maintenance_records.id", ondelete="SET NULL"), nullable=True,
    )
    parameter_name = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_open(self):
        return self.status != "resolved"

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "client_id": self.client_id,
            "topic": self.topic,
            "subject": self.subject,
            "message": self.message,
            "source": self.source,
            "status": self.status,
            "assignee": self.assignee,
            "attachments": self.attachments or [],
            "extra_service_value": (
                str(self.extra_service_value) if self.extra_service_value is not None else None
            ),
            "maintenance_record_id": self.maintenance_record_id,
            "parameter_name": self.parameter_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.topic} [{self.status}]>"
