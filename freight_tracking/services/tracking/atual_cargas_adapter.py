import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx

from freight_tracking.core.exceptions import CarrierTrackingException
from freight_tracking.core.settings import CarrierIntegrationSettings
from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.schemas.tracking_schema import TrackingResult
from freight_tracking.services.tracking.base_adapter import BaseTrackingAdapter
from freight_tracking.services.tracking.text_normalization import (
    classify_status,
    detect_occurrence,
    normalize_document_number,
    only_digits,
    parse_locale_date,
)

logger = logging.getLogger(__name__)

ATUAL_SESSION_COOKIE = "painel-cliente/iron-session"
_SESSION_COOKIE_RE = re.compile(r"painel-cliente/iron-session=([^;]+)")


class SessionCredentialCache:
    """
    Single session cookie with wall-clock expiry.

    Owned by the adapter and shared by every call of a run. Not thread safe:
    callers are sequential.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self.token: Optional[str] = None
        self.expires_at: Optional[datetime] = None

    def get(self) -> Optional[str]:
        if self.token and self.expires_at and self._clock() < self.expires_at:
            return self.token
        return None

    def store(self, token: str, ttl: timedelta) -> None:
        self.token = token
        self.expires_at = self._clock() + ttl

    def invalidate(self) -> None:
        self.token = None
        self.expires_at = None


class AtualCargasTrackingAdapter(BaseTrackingAdapter):
    """
    Atual Cargas customer panel

    Login returns an iron-session cookie (about 59 minutes, renewed at 54).
    The list endpoint returns every shipment of the sender, the invoice is
    matched locally.
    """

    carrier_label = "Atual Cargas"

    def __init__(
        self,
        settings: Optional[CarrierIntegrationSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        session_cache: Optional[SessionCredentialCache] = None,
        **kwargs
    ):
        super().__init__(settings=settings, transport=transport, **kwargs)
        self.session_cache = session_cache or SessionCredentialCache()

    def is_configured(self) -> bool:
        return bool(self.settings.atual_cargas_document and self.settings.atual_cargas_password)

    async def track(
        self,
        sender_document: str,
        invoice_number: str,
        carrier_param: Optional[str] = None
    ) -> TrackingResult:
        nf = normalize_document_number(invoice_number)
        params = {"cnpj": only_digits(sender_document), "tipo": "remetente"}

        async with self._client(self.settings.atual_cargas_timeout) as client:
            cookie = await self._get_session_cookie(client)
            response = await self._list_shipments(client, params, cookie)

            if response.status_code in (401, 403):
                # Sessione scaduta lato server: un solo nuovo login
                logger.info(f"Atual Cargas session rejected (HTTP {response.status_code}), logging in again")
                self.session_cache.invalidate()
                cookie = await self._get_session_cookie(client)
                response = await self._list_shipments(client, params, cookie)

            if response.is_error:
                raise CarrierTrackingException(
                    f"Atual Cargas API error: HTTP {response.status_code}",
                    details={"status_code": response.status_code, "invoice_number": nf}
                )

        data = response.json()
        shipments = data.get("encomendasList") if isinstance(data, dict) else None
        return self._process_shipments(shipments or [], nf)

    async def _list_shipments(self, client: httpx.AsyncClient, params: Dict[str, str], cookie: str) -> httpx.Response:
        return await self._make_request_with_retry(
            client, "GET", self.settings.atual_cargas_list_url, params=params, headers={"Cookie": cookie}
        )

    async def _get_session_cookie(self, client: httpx.AsyncClient) -> str:
        cached = self.session_cache.get()
        if cached:
            return cached
        return await self._login(client)

    async def _login(self, client: httpx.AsyncClient) -> str:
        logger.info("Atual Cargas login")
        response = await self._make_request_with_retry(
            client,
            "POST",
            self.settings.atual_cargas_login_url,
            json={
                "document": self.settings.atual_cargas_document,
                "password": self.settings.atual_cargas_password,
            },
        )
        if response.is_error:
            raise CarrierTrackingException(
                f"Atual Cargas login failed: HTTP {response.status_code}",
                details={"status_code": response.status_code}
            )

        set_cookie = ", ".join(response.headers.get_list("set-cookie"))
        match = _SESSION_COOKIE_RE.search(set_cookie)
        if not match:
            raise CarrierTrackingException("Atual Cargas login did not return a session cookie")

        cookie = f"{ATUAL_SESSION_COOKIE}={match.group(1)}"
        self.session_cache.store(cookie, timedelta(minutes=self.settings.atual_cargas_session_ttl_minutes))
        return cookie

    def _process_shipments(self, shipments: List[Dict[str, Any]], nf: str) -> TrackingResult:
        found = next(
            (item for item in shipments if isinstance(item, dict) and _invoice_suffix(item.get("notaFiscal")) == nf),
            None
        )
        if found is None:
            return TrackingResult.not_located(nf)

        title = found.get("tituloOcorrencia") or None
        situation = found.get("situacao") or None
        last_event = " - ".join(part for part in (title, situation) if part) or None

        # Testo non riconosciuto: la spedizione esiste, quindi è in viaggio
        status = classify_status(f"{situation or ''} {title or ''}") or OrderStatusEnum.IN_TRANSIT

        return TrackingResult(
            status=status,
            last_event=last_event,
            shipped_at=parse_locale_date(found.get("emissaoParseIso") or found.get("emissao")),
            estimated_delivery=parse_locale_date(
                found.get("dataPrevisaoEntrega") or found.get("dtPrevEntrega") or found.get("previsaoEntrega")
            ),
            has_occurrence=detect_occurrence(title or situation),
            raw=found,
        )


def _invoice_suffix(value: Optional[str]) -> str:
    """'1  000009089' (series + zero padded number) -> '9089'"""
    parts = (value or "").strip().split()
    if not parts:
        return ""
    return normalize_document_number(parts[-1])
