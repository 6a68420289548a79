import logging
from typing import Optional

import httpx

from freight_tracking.core.exceptions import CarrierTrackingException
from freight_tracking.schemas.tracking_schema import TrackingEventSchema, TrackingResult
from freight_tracking.services.tracking.base_adapter import BaseTrackingAdapter
from freight_tracking.services.tracking.text_normalization import (
    classify_status,
    detect_occurrence,
    normalize_document_number,
    only_digits,
    parse_locale_date,
)

logger = logging.getLogger(__name__)


class BraspressTrackingAdapter(BaseTrackingAdapter):
    """Braspress REST API (HTTP Basic credentials issued by Braspress)"""

    carrier_label = "Braspress"

    def is_configured(self) -> bool:
        return bool(self.settings.braspress_user and self.settings.braspress_password)

    async def track(
        self,
        sender_document: str,
        invoice_number: str,
        carrier_param: Optional[str] = None
    ) -> TrackingResult:
        cnpj = only_digits(sender_document)
        nf = normalize_document_number(invoice_number)
        url = f"{self.settings.braspress_base_url.rstrip('/')}/{cnpj}/{nf}/json"
        logger.info(f"Braspress Tracking Request URL: {url}")

        async with self._client(
            self.settings.braspress_timeout,
            auth=httpx.BasicAuth(self.settings.braspress_user, self.settings.braspress_password),
        ) as client:
            response = await self._make_request_with_retry(
                client, "GET", url, headers={"Accept": "application/json"}
            )
        logger.info(f"Braspress Tracking Response Status: {response.status_code}")

        if response.status_code == 404:
            return TrackingResult.not_located(nf)
        if response.is_error:
            raise CarrierTrackingException(
                f"Braspress API error: HTTP {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]}
            )

        data = response.json()
        trackings = data.get("tracking") if isinstance(data, dict) else None
        trackings = [item for item in (trackings or []) if isinstance(item, dict)]
        if not trackings:
            return TrackingResult.not_located(nf)

        # Oldest first: the last element is the latest event
        latest = trackings[-1]
        last_event = latest.get("descricao") or latest.get("ocorrencia") or None
        events = [
            TrackingEventSchema(
                date=parse_locale_date(item.get("dataOcorrencia")),
                description=item.get("descricao") or item.get("ocorrencia"),
            )
            for item in reversed(trackings)
            if item.get("descricao") or item.get("ocorrencia")
        ]

        return TrackingResult(
            status=classify_status(last_event),
            last_event=last_event,
            estimated_delivery=parse_locale_date(data.get("dtPrevEntrega")),
            has_occurrence=any(detect_occurrence(event.description) for event in events),
            events=events or None,
            raw=data,
        )
