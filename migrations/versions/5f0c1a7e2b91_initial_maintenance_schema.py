"""initial_maintenance_schema

Creates the pool maintenance schema:
  - companies, clients, teams, associations  : tenants and weekly schedule
  - parameter_definitions                    : chemical parameter catalog
  - maintenance_records, parameter_instances : cycles and per-parameter rows
  - notifications                            : anomaly alerts and reports
  - audit_logs                               : append-only lifecycle trail

Partial unique indexes:
  - one pending maintenance record per (client_id, weekday)
  - one open notification per (client_id, topic)

Revision ID: 5f0c1a7e2b91
Revises:
Create Date: 2026-10-19 09:12:40.118530
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5f0c1a7e2b91'
down_revision = None
branch_labels = None
depends_on = None


def _company_fk():
    return sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE")


def upgrade():
    # ── Tenants & schedule ────────────────────────────────────────────────
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("pool_volume", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _company_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_clients_company_id", "clients", ["company_id"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _company_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_teams_company_id", "teams", ["company_id"])

    op.create_table(
        "associations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("weekday", sa.String(length=10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _company_fk(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "weekday", name="uq_association_client_weekday"),
    )
    op.create_index("ix_associations_company_id", "associations", ["company_id"])
    op.create_index("ix_associations_client_id", "associations", ["client_id"])
    op.create_index("ix_associations_team_id", "associations", ["team_id"])

    # ── Parameter catalog ─────────────────────────────────────────────────
    op.create_table(
        "parameter_definitions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=True),
        sa.Column("value_min", sa.Numeric(10, 2), nullable=True),
        sa.Column("value_max", sa.Numeric(10, 2), nullable=True),
        sa.Column("value_target", sa.Numeric(10, 2), nullable=True),
        sa.Column("product_increase", sa.String(length=150), nullable=True),
        sa.Column("product_decrease", sa.String(length=150), nullable=True),
        sa.Column("dosage_increase", sa.Numeric(10, 2), nullable=True),
        sa.Column("dosage_decrease", sa.Numeric(10, 2), nullable=True),
        sa.Column("increment_increase", sa.Numeric(10, 2), nullable=True),
        sa.Column("increment_decrease", sa.Numeric(10, 2), nullable=True),
        sa.Column("reference_volume", sa.Numeric(10, 2), nullable=True,
                  comment="m³ the recipe is written for"),
        sa.Column("alert_above", sa.Numeric(10, 2), nullable=True),
        sa.Column("alert_topic", sa.String(length=100), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _company_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "name", name="uq_parameter_definition_company_name"),
    )
    op.create_index("ix_parameter_definitions_company_id", "parameter_definitions", ["company_id"])

    # ── Maintenance cycles ────────────────────────────────────────────────
    op.create_table(
        "maintenance_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("weekday", sa.String(length=10), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(length=150), nullable=True),
        _company_fk(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_maintenance_records_company_id", "maintenance_records", ["company_id"])
    op.create_index("ix_maintenance_records_client_id", "maintenance_records", ["client_id"])
    op.create_index("ix_maintenance_records_team_id", "maintenance_records", ["team_id"])
    op.create_index("ix_maintenance_records_company_status", "maintenance_records",
                    ["company_id", "status"])
    op.create_index(
        "uq_maintenance_record_pending_slot", "maintenance_records", ["client_id", "weekday"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "parameter_instances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("maintenance_record_id", sa.Integer(), nullable=False),
        sa.Column("parameter_name", sa.String(length=100), nullable=False),
        sa.Column("last_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("current_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("applied_product", sa.String(length=150), nullable=True),
        sa.Column("applied_quantity", sa.Numeric(10, 2), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("reason_note", sa.Text(), nullable=True),
        sa.Column("status_actor", sa.String(length=20), nullable=True,
                  comment="technician | administration"),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _company_fk(),
        sa.ForeignKeyConstraint(["maintenance_record_id"], ["maintenance_records.id"],
                                ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("maintenance_record_id", "parameter_name",
                            name="uq_parameter_instance_record_name"),
    )
    op.create_index("ix_parameter_instances_company_id", "parameter_instances", ["company_id"])
    op.create_index("ix_parameter_instances_maintenance_record_id", "parameter_instances",
                    ["maintenance_record_id"])

    # ── Notifications ─────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("topic", sa.String(length=100), nullable=False),
        sa.Column("subject", sa.String(length=300), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("assignee", sa.String(length=150), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("extra_service_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("maintenance_record_id", sa.Integer(), nullable=True),
        sa.Column("parameter_name", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        _company_fk(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["maintenance_record_id"], ["maintenance_records.id"],
                                ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_company_id", "notifications", ["company_id"])
    op.create_index("ix_notifications_client_id", "notifications", ["client_id"])
    op.create_index(
        "uq_notification_open_client_topic", "notifications", ["client_id", "topic"],
        unique=True,
        sqlite_where=sa.text("status != 'resolved'"),
        postgresql_where=sa.text("status != 'resolved'"),
    )

    # ── Audit ─────────────────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=60), nullable=False),
        sa.Column("actor", sa.String(length=150), nullable=False),
        sa.Column("diff_json", sa.Text(), nullable=True, comment="JSON: {field: {old, new}}"),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        _company_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_company_id", "audit_logs", ["company_id"])
    op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("idx_audit_action", "audit_logs", ["action"])
    op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("parameter_instances")
    op.drop_table("maintenance_records")
    op.drop_table("parameter_definitions")
    op.drop_table("associations")
    op.drop_table("teams")
    op.drop_table("clients")
    op.drop_table("companies")
