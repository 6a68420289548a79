"""
Tracking synchronization endpoints
"""
from typing import Annotated, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette import status

from freight_tracking.database import get_db
from freight_tracking.factories.tracking_adapter_factory import TrackingAdapterFactory
from freight_tracking.repository.order_repository import OrderRepository
from freight_tracking.schemas.tracking_schema import OrderTrackingStatusSchema, SyncReportSchema
from freight_tracking.services.sync.tracking_sync_service import TrackingSyncService

router = APIRouter(
    prefix='/api/v1/tracking',
    tags=['Tracking'],
)

db_dependency = Annotated[Session, Depends(get_db)]


def get_order_repository(db: db_dependency) -> OrderRepository:
    return OrderRepository(db)


def get_tracking_sync_service(
    order_repository: OrderRepository = Depends(get_order_repository)
) -> TrackingSyncService:
    # Adapter nuovi per ogni run: sessione e browser non sopravvivono alla richiesta
    return TrackingSyncService(order_repository, TrackingAdapterFactory.build_default())


@router.post("/sync", status_code=status.HTTP_200_OK, response_model=SyncReportSchema)
async def sync_tracking(service: TrackingSyncService = Depends(get_tracking_sync_service)):
    """
    Track every open order and persist the changes

    Always 200: per-order failures are counted in the report, never raised.
    """
    return await service.run_sync()


@router.post("/backfill", status_code=status.HTTP_200_OK, response_model=SyncReportSchema)
async def backfill_tracking_dates(service: TrackingSyncService = Depends(get_tracking_sync_service)):
    """Fill missing shipping / forecast dates without touching order status"""
    return await service.run_backfill()


@router.get("/status", status_code=status.HTTP_200_OK, response_model=List[OrderTrackingStatusSchema])
async def get_tracking_status(order_repository: OrderRepository = Depends(get_order_repository)):
    orders = order_repository.list_open_orders()
    return [
        OrderTrackingStatusSchema(
            id_order=order.id_order,
            order_number=order.order_number,
            invoice_number=order.invoice_number,
            status=order.status,
            last_tracking=order.last_tracking,
            last_tracking_at=order.last_tracking_at,
            has_occurrence=bool(order.has_occurrence),
            carrier_name=order.carrier.name if order.carrier else None,
            tracking_system=order.carrier.tracking_system if order.carrier else None,
        )
        for order in orders
    ]
