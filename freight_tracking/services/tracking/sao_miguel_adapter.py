import base64
import hashlib
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from freight_tracking.core.exceptions import CarrierTrackingException
from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.schemas.tracking_schema import TrackingEventSchema, TrackingResult
from freight_tracking.services.tracking.base_adapter import BaseTrackingAdapter
from freight_tracking.services.tracking.sao_miguel_status_mapping import map_sao_miguel_track_to_status
from freight_tracking.services.tracking.text_normalization import (
    detect_occurrence,
    normalize_document_number,
    only_digits,
    parse_locale_date,
)

logger = logging.getLogger(__name__)

SAO_MIGUEL_HEADERS = {
    "Content-Type": "application/json; charset=UTF-8",
    "Accept": "application/json, text/plain, */*",
    "Origin": "https://portaldocliente.expressosaomiguel.com.br",
    "Referer": "https://portaldocliente.expressosaomiguel.com.br/",
}

TOKEN_MESSAGE = "esm_decripter"
_SALTED_MAGIC = b"Salted__"


def evp_bytes_to_key(passphrase: bytes, salt: bytes, key_length: int = 32, iv_length: int = 16) -> Tuple[bytes, bytes]:
    """OpenSSL EVP_BytesToKey with MD5, one iteration"""
    derived = b""
    block = b""
    while len(derived) < key_length + iv_length:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_length], derived[key_length:key_length + iv_length]


def build_bearer_token(app_key: str, ttl: timedelta, now: Optional[datetime] = None, salt: Optional[bytes] = None) -> str:
    """
    Build the short-lived bearer token accepted by the São Miguel API.

    The token is the base64 of an OpenSSL "Salted__" AES-256-CBC envelope of
    {"message": "esm_decripter", "expired_in": <ISO UTC>}.
    """
    now = now or datetime.now(timezone.utc)
    expires = (now + ttl).astimezone(timezone.utc)
    payload = json.dumps(
        {"message": TOKEN_MESSAGE, "expired_in": expires.strftime("%Y-%m-%dT%H:%M:%S.") + f"{expires.microsecond // 1000:03d}Z"},
        separators=(",", ":"),
    ).encode("utf-8")

    salt = salt or os.urandom(8)
    key, iv = evp_bytes_to_key(app_key.encode("utf-8"), salt)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(payload) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()

    return base64.b64encode(_SALTED_MAGIC + salt + encrypted).decode("ascii")


class SaoMiguelTrackingAdapter(BaseTrackingAdapter):
    """Expresso São Miguel customer portal API, a fresh signed token per call"""

    carrier_label = "Expresso São Miguel"

    def is_configured(self) -> bool:
        return bool(self.settings.sao_miguel_app_key)

    async def track(
        self,
        sender_document: str,
        invoice_number: str,
        carrier_param: Optional[str] = None
    ) -> TrackingResult:
        cnpj = only_digits(sender_document)
        nf = normalize_document_number(invoice_number)

        token = build_bearer_token(
            self.settings.sao_miguel_app_key, timedelta(minutes=self.settings.sao_miguel_token_ttl_minutes)
        )
        headers = dict(SAO_MIGUEL_HEADERS, Authorization=f"Bearer {token}")
        body = {"cpfcnpj": cnpj, "numberdocument": nf, "serie": "", "documentType": "NFE"}

        async with self._client(self.settings.sao_miguel_timeout) as client:
            response = await self._make_request_with_retry(
                client, "POST", self.settings.sao_miguel_api_url, headers=headers, json=body
            )
        logger.info(f"São Miguel Tracking Response Status: {response.status_code}")

        if response.status_code == 404:
            return TrackingResult.not_located(nf, cnpj)
        if response.is_error:
            raise CarrierTrackingException(
                f"São Miguel API error: HTTP {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]}
            )

        data = response.json()
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return TrackingResult.not_located(nf, cnpj)

        # Solo il primo CT-e
        cte = data[0]
        shipped_at = parse_locale_date(cte.get("embark"))
        estimated_delivery = parse_locale_date(
            cte.get("expectedDate") or cte.get("dtPrevEntrega") or cte.get("previsaoEntrega")
        )

        tracks = [track for track in (cte.get("tracks") or []) if isinstance(track, dict)]
        if not tracks:
            return TrackingResult(
                status=OrderStatusEnum.IN_TRANSIT,
                last_event=f"Emissão registrada (CT-e {cte.get('number') or ''} / Embarque {cte.get('embark') or ''})",
                shipped_at=shipped_at,
                estimated_delivery=estimated_delivery,
                raw=data,
            )

        # tracks[0] is the most recent
        latest = tracks[0]
        events = [
            TrackingEventSchema(
                date=parse_locale_date(f"{track.get('date')} {track.get('hour') or ''}".strip()) if track.get("date") else None,
                description=track.get("title"),
            )
            for track in tracks
            if track.get("title")
        ]

        return TrackingResult(
            status=map_sao_miguel_track_to_status(latest.get("control"), latest.get("title")),
            last_event=latest.get("title") or None,
            shipped_at=shipped_at,
            estimated_delivery=estimated_delivery,
            has_occurrence=any(detect_occurrence(event.description) for event in events),
            events=events or None,
            raw=data,
        )
