from freight_tracking.models.carrier import Carrier, TrackingSystemEnum
from freight_tracking.models.order import Order, OrderStatusEnum, OrderStatusHistory

__all__ = [
    "Carrier",
    "TrackingSystemEnum",
    "Order",
    "OrderStatusEnum",
    "OrderStatusHistory",
]
