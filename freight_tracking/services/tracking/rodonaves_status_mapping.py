"""
Mapping between Rodonaves (RODO backend) event codes and canonical order status.

The RODO backend sends an explicit EventCode for every event, so the status is
taken from an exact-code table. Return/refusal wording in the description wins
over the code because RODO reuses transit codes for reverse logistics.
"""

from typing import Dict, Optional, Tuple

from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.services.tracking.text_normalization import normalize_for_match


RODONAVES_CODE_TO_STATUS: Dict[str, OrderStatusEnum] = {
    "0": OrderStatusEnum.IN_TRANSIT,    # Emissão
    "1": OrderStatusEnum.IN_TRANSIT,    # Coleta
    "1.1": OrderStatusEnum.IN_TRANSIT,  # Coleta redespacho
    "2": OrderStatusEnum.IN_TRANSIT,    # Em transferência
    "3": OrderStatusEnum.IN_TRANSIT,    # Chegada na unidade
    "4": OrderStatusEnum.IN_TRANSIT,    # Em distribuição
    "5": OrderStatusEnum.IN_TRANSIT,    # Saiu para entrega
    "6": OrderStatusEnum.DELIVERED,     # Entregue
}

RODONAVES_CANCEL_KEYWORDS: Tuple[str, ...] = ("DEVOLV", "RETORNO", "RECUSAD", "CANCELAD")


def map_rodonaves_event_to_status(event_code: Optional[str], description: Optional[str]) -> Optional[OrderStatusEnum]:
    """Return canonical status for a RODO event, None when the code is unknown"""
    code = str(event_code).strip() if event_code is not None else ""
    if code == "6":
        return OrderStatusEnum.DELIVERED

    normalized = normalize_for_match(description)
    if any(keyword in normalized for keyword in RODONAVES_CANCEL_KEYWORDS):
        return OrderStatusEnum.CANCELLED

    return RODONAVES_CODE_TO_STATUS.get(code)
