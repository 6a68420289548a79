"""
Factory for selecting the tracking adapter of an order based on its carrier tracking_system
"""
import logging
from typing import Dict, Optional, Tuple

from freight_tracking.core.exceptions import ExceptionFactory
from freight_tracking.models.carrier import TrackingSystemEnum
from freight_tracking.models.order import Order
from freight_tracking.schemas.tracking_schema import TrackingResult
from freight_tracking.services.interfaces.tracking_adapter_interface import ITrackingAdapter
from freight_tracking.services.tracking.atual_cargas_adapter import AtualCargasTrackingAdapter
from freight_tracking.services.tracking.braspress_adapter import BraspressTrackingAdapter
from freight_tracking.services.tracking.portal_adapter import SUPPORTED_PORTALS, PortalTrackingAdapter
from freight_tracking.services.tracking.rodonaves_adapter import RodonavesTrackingAdapter
from freight_tracking.services.tracking.sao_miguel_adapter import SaoMiguelTrackingAdapter
from freight_tracking.services.tracking.senior_adapter import SeniorTrackingAdapter
from freight_tracking.services.tracking.ssw_adapter import SswTrackingAdapter

logger = logging.getLogger(__name__)

# tracking_identifier values that choose which document is sent to the carrier
RECIPIENT_DOCUMENT_MODE = "destinatario"

# These carriers accept either side of the shipment as the query document
DOCUMENT_MODE_SYSTEMS = (TrackingSystemEnum.SAO_MIGUEL, TrackingSystemEnum.BRASPRESS)


class TrackingAdapterFactory:
    """Dispatch table TrackingSystemEnum -> adapter, with per-carrier preconditions"""

    def __init__(self, adapters: Dict[TrackingSystemEnum, ITrackingAdapter]):
        self.adapters = adapters

    @classmethod
    def build_default(cls) -> "TrackingAdapterFactory":
        """One instance of every adapter, configured from CarrierIntegrationSettings"""
        return cls({
            TrackingSystemEnum.SSW: SswTrackingAdapter(),
            TrackingSystemEnum.SENIOR: SeniorTrackingAdapter(),
            TrackingSystemEnum.ATUAL_CARGAS: AtualCargasTrackingAdapter(),
            TrackingSystemEnum.RODONAVES: RodonavesTrackingAdapter(),
            TrackingSystemEnum.SAO_MIGUEL: SaoMiguelTrackingAdapter(),
            TrackingSystemEnum.BRASPRESS: BraspressTrackingAdapter(),
            TrackingSystemEnum.PORTAL: PortalTrackingAdapter(),
        })

    def resolve(self, order: Order) -> Tuple[ITrackingAdapter, str, Optional[str]]:
        """
        Select the adapter and its arguments for an order

        Args:
            order: Order with its carrier loaded

        Returns:
            (adapter, document to query with, carrier_param)

        Raises:
            TrackingPreconditionException: the order cannot be tracked as configured
        """
        carrier = order.carrier
        carrier_name = carrier.name if carrier else "-"
        system = carrier.tracking_system if carrier else TrackingSystemEnum.NONE
        identifier = (carrier.tracking_identifier or "").strip() if carrier else ""

        adapter = self.adapters.get(system)
        if system == TrackingSystemEnum.NONE or adapter is None or not adapter.is_configured():
            raise ExceptionFactory.carrier_not_configured(carrier_name, getattr(system, "value", str(system)))

        if system == TrackingSystemEnum.SENIOR and not identifier:
            raise ExceptionFactory.missing_tracking_identifier(carrier_name, system.value)

        if system == TrackingSystemEnum.PORTAL and identifier.upper() not in SUPPORTED_PORTALS:
            raise ExceptionFactory.unsupported_portal(carrier_name, identifier or None)

        document = order.sender_document or ""
        carrier_param: Optional[str] = identifier or None

        if system in DOCUMENT_MODE_SYSTEMS:
            # Qui l'identificativo sceglie il documento, non va passato all'adapter
            if identifier.lower() == RECIPIENT_DOCUMENT_MODE and order.recipient_document:
                document = order.recipient_document
            carrier_param = None

        return adapter, document, carrier_param

    async def track_order(self, order: Order) -> TrackingResult:
        adapter, document, carrier_param = self.resolve(order)
        return await adapter.track(document, order.invoice_number, carrier_param)

    async def aclose(self) -> None:
        """Release adapter resources (the shared browser), even if one close fails"""
        for system, adapter in self.adapters.items():
            try:
                await adapter.aclose()
            except Exception as e:
                logger.error(f"Error closing {system.value} tracking adapter: {str(e)}", exc_info=True)
