"""
PoolOps: Pool Maintenance Operations
Company domain models.

Models:
    - Company:      tenant boundary; every other table points here
    - Client:       a pool owner served by the company (volume drives dosing)
    - Team:         a field crew
    - Association:  weekly schedule slot (client, weekday) → team

Architecture:
    Company ──1:N──▶ Client ──1:N──▶ Association ◀──N:1── Team

Client and Team are kept minimal; their full CRUD lives outside this service.
"""

from datetime import datetime, timezone

from poolops.models import db
from poolops.models.base import CompanyModel


# ── Constants ────────────────────────────────────────────────────────────────

WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday",
    "friday", "saturday", "sunday",
)


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Company {self.id}: {self.slug}>"


class Client(CompanyModel):
    """Pool owner. ``pool_volume`` is in cubic metres."""

    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    pool_volume = db.Column(db.Numeric(10, 2), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "pool_volume": str(self.pool_volume) if self.pool_volume is not None else None,
        }

    def __repr__(self):
        return f"<Client {self.id}: {self.name[:40]}>"


class Team(CompanyModel):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {"id": self.id, "company_id": self.company_id, "name": self.name}

    def __repr__(self):
        return f"<Team {self.id}: {self.name[:40]}>"


class Association(CompanyModel):
    """
    Weekly schedule slot.

    One row per (client, weekday); the team can be swapped in place. The
    reset job walks these rows to decide which cycles to roll forward.
    """

    __tablename__ = "associations"
    __table_args__ = (
        db.UniqueConstraint("client_id", "weekday", name="uq_association_client_weekday"),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    team_id = db.Column(
        db.Integer, db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    weekday = db.Column(db.String(10), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    client = db.relationship("Client", lazy="joined")
    team = db.relationship("Team", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "client_id": self.client_id,
            "client_name": self.client.name if self.client else None,
            "team_id": self.team_id,
            "weekday": self.weekday,
        }

    def __repr__(self):
        return f"<Association client={self.client_id} {self.weekday} → team={self.team_id}>"
