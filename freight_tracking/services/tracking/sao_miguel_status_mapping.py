"""
Mapping between Expresso São Miguel track "control" codes and canonical order status.

Unknown or missing codes fall back to the track title: first the São Miguel
wording (its titles say "em viagem", "unidade de destino", ...), then the
generic classifier.
"""

from typing import Dict, Optional, Tuple

from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.services.tracking.text_normalization import classify_status, normalize_for_match


SAO_MIGUEL_CONTROL_TO_STATUS: Dict[str, OrderStatusEnum] = {
    "ENTREGA": OrderStatusEnum.DELIVERED,
    "ENTREGUE": OrderStatusEnum.DELIVERED,
    "SAIU_ENTREGA": OrderStatusEnum.IN_TRANSIT,
    "EM_EMTREGA": OrderStatusEnum.IN_TRANSIT,  # sic, as sent by the API
    "LOCAL_ENTREGA": OrderStatusEnum.IN_TRANSIT,
    "CENTRO_DISTRIBUICAO": OrderStatusEnum.IN_TRANSIT,
    "VIAGEM": OrderStatusEnum.IN_TRANSIT,
    "EMISSAO": OrderStatusEnum.IN_TRANSIT,
}

# Checked in this order on the normalized title
SAO_MIGUEL_DELIVERED_KEYWORDS: Tuple[str, ...] = ("ENTREGU", "ENTREGA REALIZADA")
SAO_MIGUEL_CANCEL_KEYWORDS: Tuple[str, ...] = ("DEVOLV", "DEVOLUC")
SAO_MIGUEL_IN_TRANSIT_KEYWORDS: Tuple[str, ...] = (
    "SAIU PARA ENTREGA",
    "UNIDADE DE DESTINO",
    "CENTRO DE DISTRIBUI",
    "EM TRANSITO",
    "EM VIAGEM",
    "EMISSAO",
    "CONHECIMENTO",
)


def map_sao_miguel_track_to_status(control: Optional[str], title: Optional[str]) -> Optional[OrderStatusEnum]:
    code = (control or "").strip().upper()
    if code in SAO_MIGUEL_CONTROL_TO_STATUS:
        return SAO_MIGUEL_CONTROL_TO_STATUS[code]

    normalized = normalize_for_match(title)
    if any(keyword in normalized for keyword in SAO_MIGUEL_DELIVERED_KEYWORDS):
        return OrderStatusEnum.DELIVERED
    if any(keyword in normalized for keyword in SAO_MIGUEL_CANCEL_KEYWORDS):
        return OrderStatusEnum.CANCELLED
    if any(keyword in normalized for keyword in SAO_MIGUEL_IN_TRANSIT_KEYWORDS):
        return OrderStatusEnum.IN_TRANSIT
    return classify_status(title)
