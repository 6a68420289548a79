import csv
import io
import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from freight_tracking.schemas.tracking_schema import TrackingEventSchema, TrackingResult
from freight_tracking.services.tracking.base_adapter import BaseTrackingAdapter
from freight_tracking.services.tracking.text_normalization import (
    classify_status,
    detect_occurrence,
    normalize_document_number,
    normalize_for_match,
    only_digits,
    parse_locale_date,
)

logger = logging.getLogger(__name__)

# Rows of the result table that are headers or UI, not events
SSW_SKIP_KEYWORDS = ("situação", "download", "remetente", "voltar", "n fiscal", "csv")

_ROW_DATE_RE = re.compile(r"(\d{2}/\d{2}/\d{2,4}(?:\s+\d{2}:\d{2})?)")


class SswTrackingAdapter(BaseTrackingAdapter):
    """
    SSW network tracking (ssw.inf.br)

    The HTML result is a 3-column table "N Fiscal | Unidade/Data | Situação",
    oldest event first. Delivery forecast and actual delivery date are only
    available through the "Download em CSV" export linked from the same page.
    """

    carrier_label = "SSW"

    async def track(
        self,
        sender_document: str,
        invoice_number: str,
        carrier_param: Optional[str] = None
    ) -> TrackingResult:
        cnpj = only_digits(sender_document)
        nf = normalize_document_number(invoice_number)

        form = {"cnpj": cnpj, "NR": nf}
        if carrier_param:
            form["sigla_emp"] = carrier_param

        url = f"{self.settings.ssw_base_url}/2/ssw_resultSSW"
        logger.info(f"SSW Tracking Request URL: {url} (NF {nf}, sigla_emp={carrier_param or '-'})")

        async with self._client(self.settings.ssw_timeout) as client:
            response = await self._make_request_with_retry(
                client,
                "POST",
                url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            logger.info(f"SSW Tracking Response Status: {response.status_code}")
            response.raise_for_status()

            events, csv_href = self._parse_result_page(response.text)

            estimated_delivery: Optional[datetime] = None
            delivered_on: Optional[datetime] = None
            if csv_href:
                csv_text = await self._fetch_csv_export(client, csv_href)
                if csv_text:
                    estimated_delivery, delivered_on, csv_events = self._parse_csv_export(csv_text)
                    events = self._merge_events(events, csv_events)

        if not events:
            return TrackingResult.not_located(nf)

        shipped_at = next((event.date for event in events if event.date), None)
        if shipped_at is None:
            shipped_at = delivered_on

        last_event = events[-1].description
        return TrackingResult(
            status=classify_status(last_event),
            last_event=last_event,
            shipped_at=shipped_at,
            estimated_delivery=estimated_delivery,
            has_occurrence=any(detect_occurrence(event.description) for event in events),
            events=list(reversed(events)),
        )

    def _parse_result_page(self, html: str) -> Tuple[List[TrackingEventSchema], Optional[str]]:
        """Return events (oldest first) and the CSV export href, if any"""
        soup = BeautifulSoup(html, "html.parser")
        events: List[TrackingEventSchema] = []

        for row in soup.find_all("tr"):
            cells = row.find_all("td", recursive=False)
            if len(cells) != 3:
                continue

            situation_cell = cells[2]
            for control in situation_cell.find_all(["a", "button"]):
                control.decompose()
            situation = " ".join(situation_cell.get_text(" ").split())
            if not situation:
                continue
            if any(skip in situation.lower() for skip in SSW_SKIP_KEYWORDS):
                continue

            date_match = _ROW_DATE_RE.search(cells[1].get_text(" "))
            event_date = parse_locale_date(date_match.group(1)) if date_match else None
            events.append(TrackingEventSchema(date=event_date, description=situation))

        csv_href = None
        for link in soup.find_all("a"):
            if "csv" in link.get_text().lower() and link.get("href"):
                csv_href = link["href"]
                break

        return events, csv_href

    async def _fetch_csv_export(self, client: httpx.AsyncClient, href: str) -> Optional[str]:
        csv_url = href if href.startswith("http") else urljoin(self.settings.ssw_base_url + "/", href.lstrip("/"))
        try:
            response = await self._make_request_with_retry(
                client, "GET", csv_url, timeout=self.settings.ssw_csv_timeout
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            # The HTML already gave us the events; the export only adds dates
            logger.warning(f"SSW CSV export unavailable ({csv_url}): {str(e)}")
            return None
        return response.text

    def _parse_csv_export(
        self,
        csv_text: str
    ) -> Tuple[Optional[datetime], Optional[datetime], List[TrackingEventSchema]]:
        """
        Parse the ';' separated export

        Returns:
            (delivery forecast, actual delivery date, events found in the export)
        """
        rows = [row for row in csv.reader(io.StringIO(csv_text.strip()), delimiter=";") if any(c.strip() for c in row)]
        if len(rows) < 2:
            return None, None, []

        headers = [normalize_for_match(h.strip()).lower() for h in rows[0]]
        idx_forecast = _find_column(headers, lambda h: "previsao" in h and "entrega" in h)
        idx_delivered = _find_column(
            headers, lambda h: h == "data entrega" or ("data" in h and "entrega" in h and "previsao" not in h)
        )
        idx_situation = _find_column(headers, lambda h: h in ("situacao", "ocorrencia", "descricao"))
        idx_event_date = _find_column(headers, lambda h: h in ("data", "data ocorrencia", "data/hora", "data hora"))

        estimated_delivery: Optional[datetime] = None
        delivered_on: Optional[datetime] = None
        events: List[TrackingEventSchema] = []

        for row in rows[1:]:
            forecast = _cell(row, idx_forecast)
            if forecast:
                estimated_delivery = parse_locale_date(forecast) or estimated_delivery
            delivered = _cell(row, idx_delivered)
            if delivered and delivered_on is None:
                delivered_on = parse_locale_date(delivered)
            situation = _cell(row, idx_situation)
            if situation:
                events.append(
                    TrackingEventSchema(date=parse_locale_date(_cell(row, idx_event_date)), description=situation)
                )

        return estimated_delivery, delivered_on, events

    def _merge_events(
        self,
        html_events: List[TrackingEventSchema],
        csv_events: List[TrackingEventSchema]
    ) -> List[TrackingEventSchema]:
        """Add export-only events to the HTML list, oldest first, without duplicates"""
        extra: List[TrackingEventSchema] = []
        for event in csv_events:
            if not _is_known(event, html_events + extra):
                extra.append(event)
        if not extra:
            return html_events
        merged = html_events + extra
        merged.sort(key=lambda event: event.date or datetime.min)
        return merged


def _find_column(headers: List[str], predicate) -> int:
    for index, header in enumerate(headers):
        if predicate(header):
            return index
    return -1


def _cell(row: List[str], index: int) -> Optional[str]:
    if index < 0 or index >= len(row):
        return None
    value = row[index].strip()
    return value or None


def _is_known(event: TrackingEventSchema, known: List[TrackingEventSchema]) -> bool:
    """Same text on the same date (or where either side has no date)"""
    text = normalize_for_match(event.description)
    for existing in known:
        if normalize_for_match(existing.description) != text:
            continue
        if existing.date is None or event.date is None or existing.date == event.date:
            return True
    return False
