"""
Maintenance API tests.

Covers the ``maintenance`` blueprint end to end: cycle sheet, measurement,
outcome, assistance, conclude, day view and reset, plus the JSON error
envelope for each failure class.
"""

import pytest

from poolops.models import db
from poolops.models.maintenance import MaintenanceRecord
from poolops.models.notification import Notification


@pytest.fixture()
def sheet(client, company, pool_client, schedule, ph, alkalinity):
    res = client.get(
        f"/api/v1/cycles/current?company_id={company.id}&client_id={pool_client.id}&weekday=monday"
    )
    assert res.status_code == 200
    return res.get_json()


def _post(client, url, company, body=None):
    payload = {"company_id": company.id}
    payload.update(body or {})
    return client.post(url, json=payload)


def _measure(client, company, record_id, name, value):
    return _post(client, f"/api/v1/cycles/{record_id}/parameters/{name}/measurement", company, {"value": value})


class TestCycleSheet:
    def test_current_opens_cycle(self, sheet):
        assert sheet["record"]["status"] == "pending"
        assert sheet["read_only"] is False
        assert sheet["client"]["name"] == "Casa Azul"
        assert sorted(p["parameter_name"] for p in sheet["parameters"]) == ["alkalinity", "pH"]

    def test_current_requires_company(self, client, pool_client):
        res = client.get(f"/api/v1/cycles/current?client_id={pool_client.id}&weekday=monday")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_bad_weekday(self, client, company, pool_client):
        res = client.get(
            f"/api/v1/cycles/current?company_id={company.id}&client_id={pool_client.id}&weekday=noday"
        )
        assert res.status_code == 400
        assert res.get_json()["details"] == {"weekday": "invalid"}

    def test_get_by_id(self, client, company, sheet):
        rid = sheet["record"]["id"]
        res = client.get(f"/api/v1/cycles/{rid}?company_id={company.id}")
        assert res.status_code == 200
        assert res.get_json()["record"]["id"] == rid


class TestParameterActions:
    def test_measure_then_apply(self, client, company, sheet):
        rid = sheet["record"]["id"]
        res = _measure(client, company, rid, "pH", 7.0)
        assert res.status_code == 200
        assert res.get_json()["current_value"] == "7.00"

        res = _post(client, f"/api/v1/cycles/{rid}/parameters/pH/status", company, {"status": "applied"})
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "applied"
        assert body["applied_product"] == "Acid Up"
        assert body["applied_quantity"] == "10.00"

    def test_measurement_locked_is_conflict(self, client, company, sheet):
        rid = sheet["record"]["id"]
        _measure(client, company, rid, "pH", 7.0)
        _post(client, f"/api/v1/cycles/{rid}/parameters/pH/status", company, {"status": "applied"})

        res = _measure(client, company, rid, "pH", 7.2)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_missing_value(self, client, company, sheet):
        rid = sheet["record"]["id"]
        res = _post(client, f"/api/v1/cycles/{rid}/parameters/pH/measurement", company)
        assert res.status_code == 400
        assert res.get_json()["details"] == {"value": "is required"}

    def test_incomplete_configuration_is_422(self, client, company, sheet):
        rid = sheet["record"]["id"]
        db.session.execute(
            db.text("UPDATE parameter_definitions SET reference_volume = NULL WHERE name = 'pH'")
        )
        db.session.commit()
        _measure(client, company, rid, "pH", 7.0)

        res = _post(client, f"/api/v1/cycles/{rid}/parameters/pH/status", company, {"status": "applied"})
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_INCOMPLETE_CONFIGURATION"
        assert body["details"]["missing"] == ["reference_volume"]

    def test_assistance(self, client, company, sheet):
        rid = sheet["record"]["id"]
        res = _post(
            client, f"/api/v1/cycles/{rid}/parameters/alkalinity/assistance", company,
            {"message": "Needs acid wash"},
        )
        assert res.status_code == 200
        assert res.get_json()["status"] == "not_adjustable"
        assert res.get_json()["status_actor"] == "administration"
        assert Notification.query.filter_by(topic="alkalinity-assistance").count() == 1


class TestRecordLifecycle:
    def test_conclude_incomplete(self, client, company, sheet):
        rid = sheet["record"]["id"]
        _measure(client, company, rid, "pH", 7.4)

        res = _post(client, f"/api/v1/cycles/{rid}/conclude", company)
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_INCOMPLETE_PARAMETERS"
        assert body["error"] == "cannot conclude: 1 parameters missing"
        assert body["details"]["missing"] == ["alkalinity"]

    def test_conclude(self, client, company, sheet):
        rid = sheet["record"]["id"]
        _measure(client, company, rid, "pH", 7.4)
        _measure(client, company, rid, "alkalinity", 100)

        res = _post(client, f"/api/v1/cycles/{rid}/conclude", company, {"actor": "Team A"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "concluded"
        assert res.get_json()["closed_by"] == "Team A"

    def test_not_concluded(self, client, company, sheet):
        rid = sheet["record"]["id"]
        res = _post(client, f"/api/v1/cycles/{rid}/not-concluded", company, {"reason": "gate locked"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "not_concluded"

    def test_close_rejects_malformed_actor(self, client, company, sheet):
        rid = sheet["record"]["id"]
        for path in ("conclude", "not-concluded"):
            res = _post(client, f"/api/v1/cycles/{rid}/{path}", company, {"actor": ["x"]})
            assert res.status_code == 400
            assert res.get_json()["details"] == {"actor": "must be a string"}
        assert db.session.get(MaintenanceRecord, rid).status == "pending"

    def test_not_concluded_pair_gets_a_fresh_cycle(self, client, company, pool_client, sheet):
        rid = sheet["record"]["id"]
        _post(client, f"/api/v1/cycles/{rid}/not-concluded", company)

        res = client.get(
            f"/api/v1/cycles/current?company_id={company.id}&client_id={pool_client.id}&weekday=monday"
        )
        body = res.get_json()
        assert body["record"]["id"] != rid
        assert body["record"]["status"] == "pending"
        assert body["read_only"] is False


class TestDayView:
    def test_day_cycles_with_progress(self, client, company, team, sheet):
        res = client.get(f"/api/v1/teams/{team.id}/days/monday/cycles?company_id={company.id}")
        assert res.status_code == 200
        body = res.get_json()
        assert len(body["items"]) == 1
        assert body["items"][0]["status"] == "pending"
        assert body["progress"]["by_status"]["pending"] == 1


class TestResetEndpoint:
    def test_nothing_to_reset(self, client, company, sheet):
        res = client.post(f"/api/v1/companies/{company.id}/reset", json={})
        assert res.status_code == 200
        assert res.get_json()["status"] == "nothing_to_reset"

    def test_reset_after_conclude(self, client, company, sheet):
        rid = sheet["record"]["id"]
        _measure(client, company, rid, "pH", 7.4)
        _measure(client, company, rid, "alkalinity", 100)
        _post(client, f"/api/v1/cycles/{rid}/conclude", company)

        res = client.post(f"/api/v1/companies/{company.id}/reset", json={})
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "reset"
        assert body["created"] == 1
        assert MaintenanceRecord.query.filter_by(status="pending").count() == 1

    def test_unknown_company(self, client):
        res = client.post("/api/v1/companies/999/reset", json={})
        assert res.status_code == 404
