"""
Test per RodonavesTrackingAdapter (RODO con fallback BRUDAM)
"""
from datetime import datetime

import httpx
import pytest

from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.services.tracking.rodonaves_adapter import RodonavesTrackingAdapter
from freight_tracking.services.tracking.rodonaves_status_mapping import map_rodonaves_event_to_status
from tests.helpers.http import RecordingTransport, json_response

RODO_PAYLOAD = {
    "EmissionDate": "2024-01-10T00:00:00",
    "ExpectedDeliveryDays": 5,
    "Events": [
        {"Date": "2024-01-10T08:00:00", "Description": "Coletado", "EventCode": "1"},
        {"Date": "2024-01-12T09:00:00", "Description": "Entregue", "EventCode": "6"},
        {"Date": "2024-01-11T10:00:00", "Description": "Em transferência", "EventCode": "2"},
    ],
}

BRUDAM_PAYLOAD = {
    "success": True,
    "data": [
        {
            "dados": [
                {"data_ocorrencia": "10/01/2024 08:00", "ocorrencia": "Coletado"},
                {"data_ocorrencia": "11/01/2024 10:00", "ocorrencia": "Em trânsito"},
            ]
        }
    ],
}


def make_adapter(carrier_settings, rodo, brudam):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/package":
            return rodo
        return brudam

    transport = RecordingTransport(handler)
    return RodonavesTrackingAdapter(settings=carrier_settings, transport=transport, backoff_seconds=0), transport


class TestRodonavesStatusMapping:

    def test_delivered_code(self):
        assert map_rodonaves_event_to_status("6", "Entregue") == OrderStatusEnum.DELIVERED

    def test_return_wording_wins_over_transit_code(self):
        assert map_rodonaves_event_to_status("2", "Retorno ao remetente") == OrderStatusEnum.CANCELLED

    def test_transit_codes(self):
        assert map_rodonaves_event_to_status("1.1", "Coleta") == OrderStatusEnum.IN_TRANSIT

    def test_unknown_code(self):
        assert map_rodonaves_event_to_status("99", "Qualquer coisa") is None


class TestRodonavesTrackingAdapter:

    @pytest.mark.asyncio
    async def test_primary_backend(self, carrier_settings):
        adapter, transport = make_adapter(
            carrier_settings, json_response(200, RODO_PAYLOAD), json_response(500, {})
        )
        result = await adapter.track("11.222.333/0001-81", "009089")

        assert len(transport.requests) == 1
        params = transport.requests[0].url.params
        assert params["TaxIdRegistration"] == "11222333000181"
        assert params["InvoiceNumber"] == "9089"

        assert result.status == OrderStatusEnum.DELIVERED
        assert result.last_event == "Entregue"
        assert result.shipped_at == datetime(2024, 1, 10, 8, 0)
        assert result.estimated_delivery == datetime(2024, 1, 15)
        assert [event.description for event in result.events] == ["Entregue", "Em transferência", "Coletado"]

    @pytest.mark.asyncio
    async def test_primary_error_falls_back(self, carrier_settings):
        adapter, transport = make_adapter(
            carrier_settings, json_response(500, {}), json_response(200, BRUDAM_PAYLOAD)
        )
        result = await adapter.track("11222333000181", "9089")

        brudam_params = transport.requests[-1].url.params
        assert brudam_params["documento"] == "11222333000181"
        assert brudam_params["numero"] == "9089"
        assert brudam_params["prefixo"] == "cnpjnf"

        assert result.status == OrderStatusEnum.IN_TRANSIT
        assert result.last_event == "Em trânsito"
        assert result.shipped_at == datetime(2024, 1, 10, 8, 0)
        assert result.estimated_delivery is None
        assert result.events[0].description == "Em trânsito"

    @pytest.mark.asyncio
    async def test_primary_empty_falls_back_to_not_located(self, carrier_settings):
        adapter, transport = make_adapter(
            carrier_settings, json_response(200, {"Events": []}), json_response(200, {"success": False})
        )
        result = await adapter.track("11222333000181", "9089")

        assert len(transport.requests) == 2
        assert result.located is False

    @pytest.mark.asyncio
    async def test_fallback_error_propagates(self, carrier_settings):
        adapter, _ = make_adapter(carrier_settings, json_response(500, {}), json_response(503, {}))

        with pytest.raises(httpx.HTTPStatusError):
            await adapter.track("11222333000181", "9089")
