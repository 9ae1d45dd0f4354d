"""
Company isolation tests.

Every read and write is scoped by company_id. A row owned by another
company must look exactly like a missing row: TenantMismatch in the service
layer, 404 over HTTP, and nothing written.
"""

from decimal import Decimal

import pytest

from poolops.core.exceptions import NotFoundError, TenantMismatch
from poolops.models.maintenance import MaintenanceRecord
from poolops.services.cycle_service import open_cycle
from poolops.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from poolops.services.maintenance_lifecycle import record_measurement
from poolops.services.reset_service import NOTHING_TO_RESET, reset_company


@pytest.fixture()
def record(company, pool_client, schedule, ph):
    return open_cycle(company.id, pool_client.id, "monday")


class TestScopedLookups:
    def test_foreign_row_raises_tenant_mismatch(self, record, other_company):
        with pytest.raises(TenantMismatch):
            get_scoped(MaintenanceRecord, record.id, company_id=other_company.id)

    def test_missing_row_raises_not_found(self, company):
        with pytest.raises(NotFoundError) as exc:
            get_scoped(MaintenanceRecord, 12345, company_id=company.id)
        assert not isinstance(exc.value, TenantMismatch)

    def test_or_none_still_blocks_foreign_rows(self, record, other_company, company):
        assert get_scoped_or_none(MaintenanceRecord, 12345, company_id=company.id) is None
        with pytest.raises(TenantMismatch):
            get_scoped_or_none(MaintenanceRecord, record.id, company_id=other_company.id)

    def test_company_id_is_mandatory(self, record):
        with pytest.raises(ValueError):
            get_scoped(MaintenanceRecord, record.id, company_id=None)


class TestServiceIsolation:
    def test_foreign_measurement_is_rejected(self, record, other_company):
        with pytest.raises(TenantMismatch):
            record_measurement(other_company.id, record.id, "pH", Decimal("7.0"))
        assert record.parameters[0].current_value is None

    def test_foreign_client_cannot_be_opened(self, pool_client, schedule, other_company):
        with pytest.raises(TenantMismatch):
            open_cycle(other_company.id, pool_client.id, "monday")

    def test_reset_only_touches_its_company(self, record, other_company):
        assert reset_company(other_company.id).status == NOTHING_TO_RESET


class TestApiIsolation:
    def test_foreign_cycle_is_404(self, client, record, other_company):
        res = client.get(f"/api/v1/cycles/{record.id}?company_id={other_company.id}")
        assert res.status_code == 404
        assert res.get_json()["error"] == "MaintenanceRecord not found"

    def test_foreign_measurement_is_404(self, client, record, other_company):
        res = client.post(
            f"/api/v1/cycles/{record.id}/parameters/pH/measurement",
            json={"company_id": other_company.id, "value": 7.0},
        )
        assert res.status_code == 404

    def test_foreign_parameter_is_404(self, client, ph, other_company):
        res = client.get(f"/api/v1/parameters/{ph.id}?company_id={other_company.id}")
        assert res.status_code == 404
