from abc import ABC, abstractmethod
from typing import Optional

from freight_tracking.schemas.tracking_schema import TrackingResult


class ITrackingAdapter(ABC):
    """Common interface for all carrier tracking adapters"""

    @abstractmethod
    async def track(
        self,
        sender_document: str,
        invoice_number: str,
        carrier_param: Optional[str] = None
    ) -> TrackingResult:
        """
        Fetch and normalize the tracking of one invoice

        Args:
            sender_document: CNPJ/CPF used to query the carrier
            invoice_number: NF-e number, any formatting
            carrier_param: per-carrier tracking identifier (network code, tenant, portal code)

        Returns:
            TrackingResult; TrackingResult.not_located(...) when the carrier has no data

        Raises:
            httpx.HTTPError / CarrierTrackingException on transport or protocol failure
        """
        pass

    def is_configured(self) -> bool:
        """False when required credentials are missing"""
        return True

    async def aclose(self) -> None:
        """Release long-lived resources (browser, sessions)"""
        return None
