from datetime import datetime

from sqlalchemy import Integer, Column, String, Boolean, Enum, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from freight_tracking.database import Base
import enum


class OrderStatusEnum(str, enum.Enum):
    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Order(Base):
    """
        Ordine spedito tramite una transportadora.

        tracking_events è una lista JSON di {"date": iso | None, "description": str},
        dal più recente al più vecchio.
    """
    __tablename__ = "orders"

    id_order = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), nullable=False, index=True)
    id_carrier = Column(Integer, ForeignKey("carriers.id_carrier"), nullable=True, index=True)
    status = Column(Enum(OrderStatusEnum), nullable=False, default=OrderStatusEnum.PENDING, index=True)

    sender_document = Column(String(20), nullable=True)
    recipient_document = Column(String(20), nullable=True)
    invoice_number = Column(String(30), nullable=True, index=True)

    shipped_at = Column(DateTime, nullable=True)
    estimated_delivery = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)

    last_tracking = Column(String(500), nullable=True)
    last_tracking_at = Column(DateTime, nullable=True)
    has_occurrence = Column(Boolean, default=False, nullable=False)
    tracking_events = Column(JSON, nullable=True)

    date_add = Column(DateTime, default=datetime.now)

    carrier = relationship("Carrier", back_populates="orders")
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.id_order_status_history",
    )


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id_order_status_history = Column(Integer, primary_key=True, index=True)
    id_order = Column(Integer, ForeignKey("orders.id_order"), nullable=False, index=True)
    status = Column(Enum(OrderStatusEnum), nullable=False)
    note = Column(String(600), nullable=True)
    date_add = Column(DateTime, default=datetime.now)

    order = relationship("Order", back_populates="status_history")
