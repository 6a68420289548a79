import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from freight_tracking.schemas.tracking_schema import TrackingEventSchema, TrackingResult
from freight_tracking.services.tracking.base_adapter import BaseTrackingAdapter
from freight_tracking.services.tracking.rodonaves_status_mapping import map_rodonaves_event_to_status
from freight_tracking.services.tracking.text_normalization import (
    classify_status,
    detect_occurrence,
    normalize_document_number,
    only_digits,
    parse_locale_date,
)

logger = logging.getLogger(__name__)

RODONAVES_HEADERS = {
    "Accept": "application/json",
    "Referer": "https://www.rodonaves.com.br/rastreio-de-mercadoria",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
}


class RodonavesTrackingAdapter(BaseTrackingAdapter):
    """
    Rodonaves tracking

    Two backends behind the same site: RODO (own fleet, event codes) and
    BRUDAM (outsourced freight, free text). RODO is tried first; any RODO
    failure or empty answer falls back to BRUDAM.
    """

    carrier_label = "Rodonaves"

    async def track(
        self,
        sender_document: str,
        invoice_number: str,
        carrier_param: Optional[str] = None
    ) -> TrackingResult:
        cnpj = only_digits(sender_document)
        nf = normalize_document_number(invoice_number)

        async with self._client(self.settings.rodonaves_timeout, headers=RODONAVES_HEADERS) as client:
            try:
                result = await self._track_rodo(client, cnpj, nf)
                if result is not None:
                    return result
                logger.info(f"Rodonaves RODO has no events for NF {nf}, trying BRUDAM")
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Rodonaves RODO lookup failed for NF {nf}, trying BRUDAM: {str(e)}")

            return await self._track_brudam(client, cnpj, nf)

    async def _track_rodo(self, client: httpx.AsyncClient, cnpj: str, nf: str) -> Optional[TrackingResult]:
        response = await self._make_request_with_retry(
            client,
            "GET",
            self.settings.rodonaves_package_url,
            params={"TaxIdRegistration": cnpj, "InvoiceNumber": nf},
        )
        logger.info(f"Rodonaves RODO Response Status: {response.status_code}")
        response.raise_for_status()

        data = response.json()
        raw_events = data.get("Events") if isinstance(data, dict) else None
        if not raw_events:
            return None

        dated = [(parse_locale_date(event.get("Date")), event) for event in raw_events if isinstance(event, dict)]
        if not dated:
            return None
        # Most recent first
        dated.sort(key=lambda pair: pair[0] or datetime.min, reverse=True)
        last = dated[0][1]
        oldest_date = dated[-1][0]

        events = [
            TrackingEventSchema(date=event_date, description=event.get("Description"))
            for event_date, event in dated
            if event.get("Description")
        ]

        return TrackingResult(
            status=map_rodonaves_event_to_status(last.get("EventCode"), last.get("Description")),
            last_event=last.get("Description"),
            shipped_at=oldest_date,
            estimated_delivery=_expected_delivery(data),
            has_occurrence=any(detect_occurrence(event.description) for event in events),
            events=events or None,
            raw=data,
        )

    async def _track_brudam(self, client: httpx.AsyncClient, cnpj: str, nf: str) -> TrackingResult:
        response = await self._make_request_with_retry(
            client,
            "GET",
            self.settings.rodonaves_brudam_url,
            params={"documento": cnpj, "numero": nf, "prefixo": "cnpjnf"},
        )
        logger.info(f"Rodonaves BRUDAM Response Status: {response.status_code}")
        response.raise_for_status()

        data = response.json()
        items = data.get("data") if isinstance(data, dict) and data.get("success") else None
        entries: List[Dict[str, Any]] = []
        if items and isinstance(items[0], dict):
            entries = [entry for entry in (items[0].get("dados") or []) if isinstance(entry, dict)]
        if not entries:
            return TrackingResult.not_located(nf)

        # BRUDAM lists oldest first
        last = entries[-1]
        last_event = last.get("ocorrencia") or last.get("situacao") or None
        events = [
            TrackingEventSchema(
                date=parse_locale_date(entry.get("data_ocorrencia")),
                description=entry.get("ocorrencia") or entry.get("situacao"),
            )
            for entry in reversed(entries)
            if entry.get("ocorrencia") or entry.get("situacao")
        ]

        return TrackingResult(
            status=classify_status(last_event),
            last_event=last_event,
            shipped_at=parse_locale_date(entries[0].get("data_ocorrencia")),
            has_occurrence=any(detect_occurrence(event.description) for event in events),
            events=events or None,
            raw=data,
        )


def _expected_delivery(data: Dict[str, Any]):
    """EmissionDate + ExpectedDeliveryDays, when both are usable"""
    days = data.get("ExpectedDeliveryDays")
    emission = parse_locale_date(data.get("EmissionDate"))
    if emission is None or not isinstance(days, (int, float)) or not days:
        return None
    return emission + timedelta(days=days)
