"""
Maintenance workflow tests.

Covers ``poolops.services.maintenance_lifecycle``:
    - measurement recording, lock after an outcome, not_necessary reopen
    - outcome guards driven by the server-side recommendation
    - administration assistance
    - conclude / not-concluded and the measurement guard on conclude
"""

from decimal import Decimal

import pytest

from poolops.core.exceptions import (
    IncompleteConfiguration,
    IncompleteParameters,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from poolops.models import db
from poolops.models.audit import AuditLog
from poolops.models.maintenance import ParameterInstance
from poolops.models.notification import Notification
from poolops.models.parameter import ParameterDefinition
from poolops.services.cycle_service import get_instance, open_cycle
from poolops.services.maintenance_lifecycle import (
    conclude_record,
    mark_not_concluded,
    record_measurement,
    request_assistance,
    set_parameter_status,
)


@pytest.fixture()
def record(company, pool_client, schedule, ph, alkalinity):
    return open_cycle(company.id, pool_client.id, "monday")


def _inst(record, name):
    db.session.expire_all()
    return get_instance(record, name)


class TestRecordMeasurement:
    def test_stores_rounded_value(self, company, record):
        inst = record_measurement(company.id, record.id, "pH", "7.005")
        assert inst.current_value == Decimal("7.01")
        assert inst.status == "pending"

    def test_writes_measure_audit(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        log = AuditLog.query.filter_by(action="parameter_instance.measure").one()
        assert log.actor == "technician"
        assert log.diff["current_value"]["new"] == "7.00"

    def test_remeasure_while_pending_overwrites(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        record_measurement(company.id, record.id, "pH", Decimal("7.1"))
        assert _inst(record, "pH").current_value == Decimal("7.10")

    def test_creates_missing_instance_for_known_definition(self, company, record):
        db.session.add(ParameterDefinition(company_id=company.id, name="salt"))
        db.session.commit()

        inst = record_measurement(company.id, record.id, "salt", Decimal("4"))
        assert inst.parameter_name == "salt"
        assert inst.current_value == Decimal("4.00")

    def test_unknown_parameter(self, company, record):
        with pytest.raises(NotFoundError):
            record_measurement(company.id, record.id, "chlorine", Decimal("1"))

    def test_non_numeric_value(self, company, record):
        with pytest.raises(ValidationError):
            record_measurement(company.id, record.id, "pH", "acidic")

    def test_locked_after_outcome(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        set_parameter_status(company.id, record.id, "pH", "applied")

        with pytest.raises(InvalidStateTransition):
            record_measurement(company.id, record.id, "pH", Decimal("7.3"))
        assert _inst(record, "pH").current_value == Decimal("7.00")

    def test_not_necessary_reopens_on_new_measurement(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.4"))
        set_parameter_status(company.id, record.id, "pH", "not_necessary")

        inst = record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        assert inst.status == "pending"
        assert inst.current_value == Decimal("7.00")

    def test_closed_cycle_rejects_measurement(self, company, record):
        mark_not_concluded(company.id, record.id)
        with pytest.raises(InvalidStateTransition):
            record_measurement(company.id, record.id, "pH", Decimal("7.0"))


class TestOutcome:
    def test_applied_defaults_to_recommendation(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        inst = set_parameter_status(company.id, record.id, "pH", "applied")

        assert inst.status == "applied"
        assert inst.applied_product == "Acid Up"
        assert inst.applied_quantity == Decimal("10.00")
        assert inst.status_actor == "technician"
        assert inst.status_changed_at is not None

    def test_applied_keeps_caller_quantity(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        inst = set_parameter_status(company.id, record.id, "pH", "applied", quantity=Decimal("8"))
        assert inst.applied_quantity == Decimal("8.00")
        assert inst.applied_product == "Acid Up"

    def test_out_of_stock_records_the_missing_product(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("8.0"))
        inst = set_parameter_status(company.id, record.id, "pH", "out_of_stock")
        assert inst.applied_product == "pH Down"
        assert inst.applied_quantity == Decimal("15.00")

    def test_applied_needs_an_adjustment(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.4"))
        with pytest.raises(InvalidStateTransition):
            set_parameter_status(company.id, record.id, "pH", "applied")
        assert _inst(record, "pH").status == "pending"

    def test_outcome_needs_a_measurement(self, company, record):
        with pytest.raises(InvalidStateTransition) as exc:
            set_parameter_status(company.id, record.id, "pH", "not_necessary")
        assert exc.value.reason == "no measurement recorded"

    def test_not_necessary_needs_in_range(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        with pytest.raises(InvalidStateTransition):
            set_parameter_status(company.id, record.id, "pH", "not_necessary")

    def test_not_adjustable_when_direction_unsupported(self, company, record):
        record_measurement(company.id, record.id, "alkalinity", Decimal("140"))
        inst = set_parameter_status(company.id, record.id, "alkalinity", "not_adjustable", reason="no decreaser")

        assert inst.status == "not_adjustable"
        assert inst.current_value == Decimal("140.00")
        assert inst.reason_note == "no decreaser"

    def test_not_adjustable_refused_when_adjustable(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        with pytest.raises(InvalidStateTransition):
            set_parameter_status(company.id, record.id, "pH", "not_adjustable")

    def test_pending_clears_the_measurement(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        inst = set_parameter_status(company.id, record.id, "pH", "pending")
        assert inst.status == "pending"
        assert inst.current_value is None

    def test_terminal_instance_cannot_change(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        set_parameter_status(company.id, record.id, "pH", "applied")
        with pytest.raises(InvalidStateTransition):
            set_parameter_status(company.id, record.id, "pH", "pending")

    def test_incomplete_configuration(self, company, pool_client, schedule):
        db.session.add(ParameterDefinition(
            company_id=company.id, name="chlorine",
            value_min=Decimal("1"), value_max=Decimal("3"), value_target=Decimal("2"),
            product_increase="Chlor Plus", dosage_increase=Decimal("1"), increment_increase=Decimal("1"),
        ))
        db.session.commit()
        rec = open_cycle(company.id, pool_client.id, "monday")
        record_measurement(company.id, rec.id, "chlorine", Decimal("0.5"))

        with pytest.raises(IncompleteConfiguration) as exc:
            set_parameter_status(company.id, rec.id, "chlorine", "applied")
        assert exc.value.missing == ["reference_volume"]

    def test_not_adjustable_without_recipe_reports_incomplete_configuration(self, company, record):
        db.session.add(ParameterDefinition(
            company_id=company.id, name="salt", value_min=Decimal("3"), value_max=Decimal("5"),
        ))
        db.session.commit()
        record_measurement(company.id, record.id, "salt", Decimal("7"))

        with pytest.raises(IncompleteConfiguration) as exc:
            set_parameter_status(company.id, record.id, "salt", "not_adjustable")
        assert exc.value.missing == ["value_target", "reference_volume"]
        assert get_instance(record, "salt").status == "pending"

    @pytest.mark.parametrize("status, actor", [("finished", "technician"), ("applied", "robot")])
    def test_rejects_unknown_status_or_actor(self, company, record, status, actor):
        with pytest.raises(ValidationError):
            set_parameter_status(company.id, record.id, "pH", status, actor=actor)


class TestAssistance:
    def test_marks_not_adjustable_by_administration(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        inst = request_assistance(company.id, record.id, "pH", "Pump broken, office will call")

        assert inst.status == "not_adjustable"
        assert inst.status_actor == "administration"
        assert inst.current_value == Decimal("7.00")
        assert AuditLog.query.filter_by(action="parameter_instance.assistance").count() == 1

    def test_opens_an_assistance_notification(self, company, record, pool_client):
        request_assistance(company.id, record.id, "pH", "Pump broken")

        notif = Notification.query.filter_by(topic="ph-assistance").one()
        assert notif.client_id == pool_client.id
        assert notif.source == "assistance"
        assert notif.status == "pending"
        assert notif.message == "Pump broken"

    def test_administration_may_only_set_not_adjustable(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.0"))
        with pytest.raises(ValidationError):
            set_parameter_status(company.id, record.id, "pH", "applied", actor="administration")


class TestRecordClose:
    def _measure_everything(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.4"))
        record_measurement(company.id, record.id, "alkalinity", Decimal("100"))

    def test_conclude(self, company, record):
        self._measure_everything(company, record)
        closed = conclude_record(company.id, record.id, actor="Team A")

        assert closed.status == "concluded"
        assert closed.closed_by == "Team A"
        assert closed.closed_at is not None

    def test_conclude_with_missing_measurement_changes_nothing(self, company, record):
        record_measurement(company.id, record.id, "pH", Decimal("7.4"))

        with pytest.raises(IncompleteParameters) as exc:
            conclude_record(company.id, record.id)

        assert str(exc.value) == "cannot conclude: 1 parameters missing"
        assert exc.value.missing == ["alkalinity"]
        db.session.expire_all()
        assert record.status == "pending"
        assert AuditLog.query.filter_by(action="maintenance_record.conclude").count() == 0

    def test_conclude_does_not_open_a_successor(self, company, record):
        self._measure_everything(company, record)
        conclude_record(company.id, record.id)
        assert ParameterInstance.query.count() == 2

    def test_not_concluded_skips_the_measurement_guard(self, company, record):
        closed = mark_not_concluded(company.id, record.id, reason="client away")
        assert closed.status == "not_concluded"
        log = AuditLog.query.filter_by(action="maintenance_record.not_conclude").one()
        assert log.diff["reason"] == "client away"

    def test_closed_record_cannot_close_again(self, company, record):
        mark_not_concluded(company.id, record.id)
        with pytest.raises(InvalidStateTransition):
            conclude_record(company.id, record.id)

    def test_closed_record_rejects_outcomes(self, company, record):
        self._measure_everything(company, record)
        conclude_record(company.id, record.id)
        with pytest.raises(InvalidStateTransition):
            set_parameter_status(company.id, record.id, "pH", "not_necessary")
