"""
Interfaccia per Order Repository seguendo ISP
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from freight_tracking.models.carrier import TrackingSystemEnum
from freight_tracking.models.order import Order, OrderStatusEnum, OrderStatusHistory
from freight_tracking.services.sync.reconciliation import MutationSet


class IOrderRepository(ABC):
    """Order store used by the tracking sync"""

    @abstractmethod
    def find_trackable_orders(
        self,
        statuses: Iterable[OrderStatusEnum],
        exclude_systems: Optional[Iterable[TrackingSystemEnum]] = None,
        missing_dates_only: bool = False
    ) -> List[Order]:
        """
        Orders with invoice number and sender document whose carrier has a tracking system

        Args:
            statuses: order statuses to include
            exclude_systems: tracking systems to leave out
            missing_dates_only: only orders without shipped_at or estimated_delivery
        """
        pass

    @abstractmethod
    def update_order(self, id_order: int, mutation: MutationSet) -> Order:
        """
        Apply the mutation in a single commit

        A status change also inserts its OrderStatusHistory row in the same
        transaction: either both are saved or neither is.

        Raises:
            NotFoundException: the order no longer exists
            InfrastructureException: the commit failed (rolled back)
        """
        pass

    @abstractmethod
    def append_status_history(self, id_order: int, status: OrderStatusEnum, note: Optional[str]) -> OrderStatusHistory:
        """Aggiunge una riga allo storico stati"""
        pass

    @abstractmethod
    def list_open_orders(self) -> List[Order]:
        """PENDING and IN_TRANSIT orders with their carrier"""
        pass
