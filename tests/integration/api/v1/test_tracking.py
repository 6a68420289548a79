"""
Test per endpoint /api/v1/tracking/*
"""
import pytest
from fastapi import status

from freight_tracking.models.carrier import TrackingSystemEnum
from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.routers.tracking import get_tracking_sync_service
from freight_tracking.schemas.tracking_schema import SyncReportSchema
from tests.factories.carrier_factory import create_carrier
from tests.factories.order_factory import create_order


class FakeSyncService:
    def __init__(self):
        self.calls = []

    async def run_sync(self) -> SyncReportSchema:
        self.calls.append("sync")
        return SyncReportSchema(
            message="Tracking sync completed: 2 updated, 1 errors, 0 skipped of 3",
            updated=2,
            errored=1,
            total=3,
        )

    async def run_backfill(self) -> SyncReportSchema:
        self.calls.append("backfill")
        return SyncReportSchema(message="Date backfill: no orders to track", total=0)


@pytest.fixture
def fake_sync_service(test_app):
    service = FakeSyncService()
    test_app.dependency_overrides[get_tracking_sync_service] = lambda: service
    return service


@pytest.mark.integration
class TestTrackingEndpoints:
    """Test per /api/v1/tracking/*"""

    def test_sync_returns_report(self, client, fake_sync_service):
        response = client.post("/api/v1/tracking/sync")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "message": "Tracking sync completed: 2 updated, 1 errors, 0 skipped of 3",
            "updated": 2,
            "errored": 1,
            "skipped": 0,
            "total": 3,
        }
        assert fake_sync_service.calls == ["sync"]

    def test_backfill_returns_report(self, client, fake_sync_service):
        response = client.post("/api/v1/tracking/backfill")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["total"] == 0
        assert fake_sync_service.calls == ["backfill"]

    def test_status_lists_open_orders(self, client, db_session):
        carrier = create_carrier(db_session, name="Rodonaves", tracking_system=TrackingSystemEnum.RODONAVES)
        create_order(db_session, carrier=carrier, order_number="PED-1", last_tracking="Coletado")
        create_order(db_session, carrier=carrier, order_number="PED-2", status=OrderStatusEnum.DELIVERED)

        response = client.get("/api/v1/tracking/status")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data) == 1
        assert data[0]["order_number"] == "PED-1"
        assert data[0]["status"] == "PENDING"
        assert data[0]["last_tracking"] == "Coletado"
        assert data[0]["carrier_name"] == "Rodonaves"
        assert data[0]["tracking_system"] == "RODONAVES"
