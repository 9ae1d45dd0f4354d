"""
PoolOps: Pool Maintenance Operations
Parameter catalog model.

Models:
    - ParameterDefinition: company-scoped water-chemistry parameter with its
      ideal range, target and the two remediation recipes (increase/decrease)

A recipe reads: adding ``dosage`` kg of ``product`` moves the parameter by
``increment`` units in a pool of ``reference_volume`` m³.
"""

from datetime import datetime, timezone

from poolops.models import db
from poolops.models.base import CompanyModel


def _num(value):
    return str(value) if value is not None else None


class ParameterDefinition(CompanyModel):
    __tablename__ = "parameter_definitions"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_parameter_definition_company_name"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    unit = db.Column(db.String(20), default="")

    value_min = db.Column(db.Numeric(10, 2), nullable=True)
    value_max = db.Column(db.Numeric(10, 2), nullable=True)
    value_target = db.Column(db.Numeric(10, 2), nullable=True)

    product_increase = db.Column(db.String(150), nullable=True)
    product_decrease = db.Column(db.String(150), nullable=True)
    dosage_increase = db.Column(db.Numeric(10, 2), nullable=True)
    dosage_decrease = db.Column(db.Numeric(10, 2), nullable=True)
    increment_increase = db.Column(db.Numeric(10, 2), nullable=True)
    increment_decrease = db.Column(db.Numeric(10, 2), nullable=True)
    reference_volume = db.Column(db.Numeric(10, 2), nullable=True, comment="m³ the recipe is written for")

    # Anomaly alert override; falls back to ANOMALY_THRESHOLDS when null
    alert_above = db.Column(db.Numeric(10, 2), nullable=True)
    alert_topic = db.Column(db.String(100), nullable=True)

    active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "unit": self.unit,
            "value_min": _num(self.value_min),
            "value_max": _num(self.value_max),
            "value_target": _num(self.value_target),
            "product_increase": self.product_increase,
            "product_decrease": self.product_decrease,
            "dosage_increase": _num(self.dosage_increase),
            "dosage_decrease": _num(self.dosage_decrease),
            "increment_increase": _num(self.increment_increase),
            "increment_decrease": _num(self.increment_decrease),
            "reference_volume": _num(self.reference_volume),
            "alert_above": _num(self.alert_above),
            "alert_topic": self.alert_topic,
            "active": self.active,
        }

    def __repr__(self):
        return f"<ParameterDefinition {self.id}: {self.name}>"
