import enum
import logging
from typing import Any, Dict, List, Optional

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


class SeniorResponseShape(str, enum.Enum):
    """
    The same Senior TCK endpoint answers in two formats depending on the tenant:

    FLAT:   listaTracking = [{data, hora, situacao, descricao, ...}, ...] oldest first,
            forecast at the response root (previsaoEntrega / dtPrevEntrega / previsao)
    PHASED: listaTracking = [{tracking: {dataPrevisaoEntrega, situacao},
                              listaTrackingFase: [{sequencia, executada, dataExecucao,
                                                   observacao, fase: {descricao}}]}]
    """
    FLAT = "FLAT"
    PHASED = "PHASED"


def detect_senior_shape(first_item: Dict[str, Any]) -> SeniorResponseShape:
    if "tracking" in first_item and isinstance(first_item.get("listaTrackingFase"), list):
        return SeniorResponseShape.PHASED
    return SeniorResponseShape.FLAT


def _text(value: Any) -> Optional[str]:
    """String fields only; nested objects or blanks count as missing"""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first_text(item: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = _text(item.get(key))
        if value:
            return value
    return None


class SeniorTrackingAdapter(BaseTrackingAdapter):
    """Senior TCK tracking, one tenant per carrier (carrier_param)"""

    carrier_label = "Senior"

    async def track(
        self,
        sender_document: str,
        invoice_number: str,
        carrier_param: Optional[str] = None
    ) -> TrackingResult:
        if not carrier_param:
            raise ValueError("Senior tracking requires the tenant name")

        cnpj = only_digits(sender_document)
        nf = normalize_document_number(invoice_number)
        tenant = carrier_param.strip()

        url = self.settings.senior_tracking_url
        headers = {
            "Content-Type": "application/json",
            "X-Tenant": tenant,
            "X-TenantDomain": f"{tenant}.senior.com.br",
        }
        logger.info(f"Senior Tracking Request URL: {url} (tenant {tenant}, NF {nf})")

        async with self._client(self.settings.senior_timeout) as client:
            response = await self._make_request_with_retry(
                client, "POST", url, headers=headers, json={"inscricaoFiscal": cnpj, "documento": nf}
            )
        logger.info(f"Senior Tracking Response Status: {response.status_code}")
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            return TrackingResult.not_located(nf)

        raw_list = data.get("listaTracking") or data.get("trackings") or []
        if not isinstance(raw_list, list) or not raw_list or not isinstance(raw_list[0], dict):
            return TrackingResult.not_located(nf)

        shape = detect_senior_shape(raw_list[0])
        if shape == SeniorResponseShape.PHASED:
            return self._extract_phased(raw_list[0], nf)
        return self._extract_flat(data, raw_list, nf)

    def _extract_phased(self, item: Dict[str, Any], nf: str) -> TrackingResult:
        tracking = item.get("tracking") if isinstance(item.get("tracking"), dict) else {}
        phases = [
            phase for phase in item.get("listaTrackingFase", [])
            if isinstance(phase, dict) and phase.get("executada") is not False
        ]
        phases.sort(key=lambda phase: phase.get("sequencia") or 0)

        if not phases:
            situation = tracking.get("situacao") if isinstance(tracking.get("situacao"), dict) else {}
            last_event = _text(situation.get("descricao"))
            if not last_event:
                return TrackingResult.not_located(nf)
            return TrackingResult(
                status=classify_status(last_event),
                last_event=last_event,
                estimated_delivery=parse_locale_date(_text(tracking.get("dataPrevisaoEntrega"))),
                has_occurrence=detect_occurrence(last_event),
            )

        # observacao is the real text; fase.descricao is the technical phase name
        events: List[TrackingEventSchema] = []
        for phase in phases:
            stage = phase.get("fase") if isinstance(phase.get("fase"), dict) else {}
            description = _text(phase.get("observacao")) or _text(stage.get("descricao"))
            if description:
                events.append(
                    TrackingEventSchema(date=parse_locale_date(_text(phase.get("dataExecucao"))), description=description)
                )

        situation = tracking.get("situacao") if isinstance(tracking.get("situacao"), dict) else {}
        last_event = events[-1].description if events else _text(situation.get("descricao"))

        return TrackingResult(
            status=classify_status(last_event),
            last_event=last_event,
            shipped_at=parse_locale_date(_text(phases[0].get("dataExecucao"))),
            estimated_delivery=parse_locale_date(_text(tracking.get("dataPrevisaoEntrega"))),
            has_occurrence=any(detect_occurrence(event.description) for event in events),
            events=list(reversed(events)) or None,
        )

    def _extract_flat(self, data: Dict[str, Any], items: List[Dict[str, Any]], nf: str) -> TrackingResult:
        events: List[TrackingEventSchema] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            description = _first_text(item, "situacao", "descricao", "fase", "status")
            if description:
                events.append(TrackingEventSchema(date=self._flat_item_date(item), description=description))

        if not events:
            return TrackingResult.not_located(nf)

        last_event = events[-1].description
        forecast = _first_text(data, "previsaoEntrega", "dtPrevEntrega", "previsao")

        return TrackingResult(
            status=classify_status(last_event),
            last_event=last_event,
            shipped_at=self._flat_item_date(items[0]) if isinstance(items[0], dict) else None,
            estimated_delivery=parse_locale_date(forecast),
            has_occurrence=any(detect_occurrence(event.description) for event in events),
            events=list(reversed(events)),
        )

    @staticmethod
    def _flat_item_date(item: Dict[str, Any]):
        date_text = _first_text(item, "data", "dataOcorrencia", "datahora")
        if not date_text:
            return None
        hour = _text(item.get("hora")) or ""
        return parse_locale_date(f"{date_text} {hour}".strip())
