"""
Test per SswTrackingAdapter (tabella HTML + export CSV)
"""
from datetime import datetime
from urllib.parse import parse_qs

import httpx
import pytest

from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.services.tracking.ssw_adapter import SswTrackingAdapter
from tests.helpers.http import RecordingTransport

RESULT_PAGE = """
<html><body>
<table>
  <tr><td>N Fiscal</td><td>Unidade/Data</td><td>Situação</td></tr>
  <tr><td>9089</td><td>CURITIBA 10/01/24 08:15</td><td>COLETADO <a href="#">detalhes</a></td></tr>
  <tr><td>9089</td><td>SAO PAULO 11/01/24 19:40</td><td>EM TRANSITO PARA A UNIDADE</td></tr>
</table>
<a href="/2/ssw_csv?id=1">Download em CSV</a>
</body></html>
"""

CSV_EXPORT = (
    "Data;Situacao;Previsao de entrega;Data entrega\n"
    "10/01/24 08:15;COLETADO;15/01/24;\n"
    "12/01/24 07:00;SAIU PARA ENTREGA;15/01/24;\n"
)


def make_adapter(carrier_settings, handler, **kwargs):
    transport = RecordingTransport(handler)
    adapter = SswTrackingAdapter(settings=carrier_settings, transport=transport, backoff_seconds=0, **kwargs)
    return adapter, transport


class TestSswTrackingAdapter:

    @pytest.mark.asyncio
    async def test_html_and_csv_are_merged(self, carrier_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/2/ssw_resultSSW":
                return httpx.Response(200, text=RESULT_PAGE)
            if request.url.path == "/2/ssw_csv":
                return httpx.Response(200, text=CSV_EXPORT)
            return httpx.Response(404)

        adapter, transport = make_adapter(carrier_settings, handler)
        result = await adapter.track("11.222.333/0001-81", "000009089", "CWB")

        form = parse_qs(transport.requests[0].content.decode())
        assert form == {"cnpj": ["11222333000181"], "NR": ["9089"], "sigla_emp": ["CWB"]}

        assert result.located is True
        assert result.last_event == "SAIU PARA ENTREGA"
        assert result.status == OrderStatusEnum.IN_TRANSIT
        assert result.shipped_at == datetime(2024, 1, 10, 8, 15)
        assert result.estimated_delivery == datetime(2024, 1, 15)
        assert [event.description for event in result.events] == [
            "SAIU PARA ENTREGA",
            "EM TRANSITO PARA A UNIDADE",
            "COLETADO",
        ]

    @pytest.mark.asyncio
    async def test_csv_failure_keeps_html_events(self, carrier_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/2/ssw_resultSSW":
                return httpx.Response(200, text=RESULT_PAGE)
            return httpx.Response(500)

        adapter, _ = make_adapter(carrier_settings, handler)
        result = await adapter.track("11222333000181", "9089")

        assert result.last_event == "EM TRANSITO PARA A UNIDADE"
        assert result.estimated_delivery is None
        assert len(result.events) == 2

    @pytest.mark.asyncio
    async def test_page_without_events_is_not_located(self, carrier_settings):
        adapter, _ = make_adapter(
            carrier_settings, lambda request: httpx.Response(200, text="<html><body>Nada</body></html>")
        )
        result = await adapter.track("11222333000181", "9089")

        assert result.located is False
        assert result.status is None
        assert result.last_event == "Não localizado (NF 9089)"

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, carrier_settings):
        responses = [httpx.Response(429), httpx.Response(429), httpx.Response(200, text="<html></html>")]
        adapter, transport = make_adapter(carrier_settings, lambda request: responses.pop(0))

        result = await adapter.track("11222333000181", "9089")

        assert len(transport.requests) == 3
        assert result.located is False

    @pytest.mark.asyncio
    async def test_rate_limit_budget_exhausted_raises(self, carrier_settings):
        adapter, transport = make_adapter(carrier_settings, lambda request: httpx.Response(429), max_retries=2)

        with pytest.raises(httpx.HTTPStatusError):
            await adapter.track("11222333000181", "9089")
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_server_error_propagates(self, carrier_settings):
        adapter, _ = make_adapter(carrier_settings, lambda request: httpx.Response(502))

        with pytest.raises(httpx.HTTPStatusError):
            await adapter.track("11222333000181", "9089")
