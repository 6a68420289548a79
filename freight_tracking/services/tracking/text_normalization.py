"""
Text normalization and status classification shared by all carrier adapters.

Carriers describe events in free Portuguese text with inconsistent accents and
casing, so every match is done on an uppercased, accent-free copy of the text.
"""
import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional, Tuple

from dateutil.parser import isoparse

from freight_tracking.models.order import OrderStatusEnum


_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_BR_DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{2,4})(?:[T\s]+(\d{2}):(\d{2}))?")

# Checked before OCCURRENCE_KEYWORDS: "OCORRENCIA" alone is ambiguous
OCCURRENCE_EXCLUSIONS: Tuple[str, ...] = (
    "SEM OCORRENCIA",
    "OCORRENCIA DE ENTREGA",
)

OCCURRENCE_KEYWORDS: Tuple[str, ...] = (
    "TENTATIVA DE ENTREGA",
    "DESTINATARIO AUSENTE",
    "ENDERECO NAO ENCONTRADO",
    "ENDERECO INCORRETO",
    "ESTABELECIMENTO FECHADO",
    "AVARIA",
    "EXTRAVIO",
    "RETIDO",
    "RECUSADO",
    "SUSTADO",
    "IMPEDIMENTO",
)

DELIVERED_KEYWORDS: Tuple[str, ...] = (
    "ENTREGUE",
    "ENTREGA REALIZADA",
    "ENTREGA EFETUADA",
    "OCORRENCIA DE ENTREGA",
)

CANCELLED_KEYWORDS: Tuple[str, ...] = (
    "DEVOLV",
    "DEVOLUCAO",
    "RETORNO",
    "CANCELAD",
)

IN_TRANSIT_KEYWORDS: Tuple[str, ...] = (
    "SAIU PARA ENTREGA",
    "EM ROTA",
    "SAIDA PARA ENTREGA",
    "EM TRANSITO",
    "TRANSFERENCIA",
    "COLETADO",
    "COLETA REALIZADA",
    "EXPEDIDO",
    "EM DISTRIBUICAO",
    "CHEGADA EM UNIDADE",
    "CHEGADA NA UNIDADE",
    "EM SEPARACAO",
    "RECEBIDO",
    "AGUARDANDO",
    "TRANSBORDO",
    "MANIFESTADO",
    "CONHECIMENTO EMITIDO",
)


def parse_locale_date(text: Optional[str]) -> Optional[datetime]:
    """
    Parse a carrier date: DD/MM/YY[YY][ HH:MM] or ISO YYYY-MM-DD[...].

    Two-digit years pivot to 2000+YY. Timezone-aware ISO values are converted
    to naive UTC. Returns None for empty, unparseable or impossible dates.
    """
    if not text:
        return None
    value = str(text).strip()

    if _ISO_DATE_RE.match(value):
        try:
            parsed = isoparse(value)
        except (ValueError, OverflowError):
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    match = _BR_DATE_RE.match(value)
    if not match:
        return None

    day, month, year, hour, minute = match.groups()
    year_number = int(year)
    if year_number < 100:
        year_number += 2000
    try:
        return datetime(
            year_number,
            int(month),
            int(day),
            int(hour) if hour else 0,
            int(minute) if minute else 0,
        )
    except ValueError:
        return None


def normalize_for_match(text: Optional[str]) -> str:
    """Uppercase and strip diacritics: "Situação" -> "SITUACAO" """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.upper()


def detect_occurrence(text: Optional[str]) -> bool:
    """True when the text describes a delivery problem"""
    normalized = normalize_for_match(text)
    if not normalized:
        return False
    if any(keyword in normalized for keyword in OCCURRENCE_KEYWORDS):
        return True
    if "OCORRENCIA" in normalized:
        return not any(exclusion in normalized for exclusion in OCCURRENCE_EXCLUSIONS)
    return False


def classify_status(text: Optional[str]) -> Optional[OrderStatusEnum]:
    """
    Map free event text to the canonical status.

    Precedence is DELIVERED, then CANCELLED, then IN_TRANSIT: an event that
    mentions both a cancellation and transit is a cancellation.
    """
    normalized = normalize_for_match(text)
    if not normalized:
        return None
    if any(keyword in normalized for keyword in DELIVERED_KEYWORDS):
        return OrderStatusEnum.DELIVERED
    if any(keyword in normalized for keyword in CANCELLED_KEYWORDS):
        return OrderStatusEnum.CANCELLED
    if any(keyword in normalized for keyword in IN_TRANSIT_KEYWORDS):
        return OrderStatusEnum.IN_TRANSIT
    return None


def only_digits(value: Optional[str]) -> str:
    """Strip everything but digits (CNPJ/CPF formatting, series prefixes)"""
    if not value:
        return ""
    return re.sub(r"\D", "", str(value))


def normalize_document_number(value: Optional[str]) -> str:
    """Digits only, without leading zeros: "000.009.089" -> "9089" """
    digits = only_digits(value)
    if not digits:
        return ""
    return digits.lstrip("0") or "0"
