from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from freight_tracking.core.exceptions import ExceptionFactory, InfrastructureException
from freight_tracking.models.carrier import Carrier, TrackingSystemEnum
from freight_tracking.models.order import Order, OrderStatusEnum, OrderStatusHistory
from freight_tracking.repository.interfaces.order_repository_interface import IOrderRepository
from freight_tracking.services.sync.reconciliation import MutationSet


class OrderRepository(IOrderRepository):
    def __init__(self, session: Session):
        """
        Inizializza la repository con la sessione del DB

        Args:
            session (Session): Sessione del DB
        """
        self.session = session

    def find_trackable_orders(
        self,
        statuses: Iterable[OrderStatusEnum],
        exclude_systems: Optional[Iterable[TrackingSystemEnum]] = None,
        missing_dates_only: bool = False
    ) -> List[Order]:
        try:
            query = (
                self.session.query(Order)
                .join(Carrier, Order.id_carrier == Carrier.id_carrier)
                .options(joinedload(Order.carrier))
                .filter(
                    Order.status.in_(list(statuses)),
                    Order.invoice_number.isnot(None),
                    Order.invoice_number != "",
                    Order.sender_document.isnot(None),
                    Order.sender_document != "",
                    Carrier.tracking_system != TrackingSystemEnum.NONE,
                )
            )
            if exclude_systems:
                query = query.filter(Carrier.tracking_system.notin_(list(exclude_systems)))
            if missing_dates_only:
                query = query.filter(or_(Order.shipped_at.is_(None), Order.estimated_delivery.is_(None)))

            return query.order_by(Order.id_order).all()
        except SQLAlchemyError as e:
            raise InfrastructureException(f"Database error retrieving trackable orders: {str(e)}")

    def update_order(self, id_order: int, mutation: MutationSet) -> Order:
        order = self.session.query(Order).filter(Order.id_order == id_order).first()
        if order is None:
            raise ExceptionFactory.order_not_found(id_order)

        for field_name, value in mutation.changes.items():
            setattr(order, field_name, value)
        if mutation.tracked_at is not None:
            order.last_tracking_at = mutation.tracked_at

        try:
            if mutation.status_changed:
                self.session.add(OrderStatusHistory(
                    id_order=id_order,
                    status=mutation.new_status,
                    note=mutation.status_note
                ))
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise InfrastructureException(f"Database error updating order {id_order}: {str(e)}")
        self.session.refresh(order)
        return order

    def append_status_history(self, id_order: int, status: OrderStatusEnum, note: Optional[str]) -> OrderStatusHistory:
        history = OrderStatusHistory(id_order=id_order, status=status, note=note)
        try:
            self.session.add(history)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise InfrastructureException(f"Database error adding status history to order {id_order}: {str(e)}")
        return history

    def list_open_orders(self) -> List[Order]:
        try:
            return (
                self.session.query(Order)
                .options(joinedload(Order.carrier))
                .filter(Order.status.in_([OrderStatusEnum.PENDING, OrderStatusEnum.IN_TRANSIT]))
                .order_by(Order.id_order.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise InfrastructureException(f"Database error retrieving open orders: {str(e)}")
