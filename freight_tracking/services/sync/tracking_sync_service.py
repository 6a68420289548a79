"""
Servizio di sincronizzazione del tracking di tutti gli ordini aperti
"""
import asyncio
import logging
from typing import List, Optional

from freight_tracking.core.exceptions import BaseApplicationException, TrackingPreconditionException
from freight_tracking.core.settings import get_tracking_settings
from freight_tracking.factories.tracking_adapter_factory import TrackingAdapterFactory
from freight_tracking.models.carrier import TrackingSystemEnum
from freight_tracking.models.order import Order, OrderStatusEnum
from freight_tracking.repository.interfaces.order_repository_interface import IOrderRepository
from freight_tracking.schemas.tracking_schema import SyncReportSchema
from freight_tracking.services.sync.reconciliation import reconcile

logger = logging.getLogger(__name__)

SYNC_STATUSES = [OrderStatusEnum.PENDING, OrderStatusEnum.IN_TRANSIT]
BACKFILL_STATUSES = [OrderStatusEnum.PENDING, OrderStatusEnum.IN_TRANSIT, OrderStatusEnum.DELIVERED]

# Backends that never report shipping or forecast dates
BACKFILL_EXCLUDED_SYSTEMS = [TrackingSystemEnum.BRASPRESS, TrackingSystemEnum.PORTAL]


class TrackingSyncService:
    """
    Sequential sync run: one order at a time, with a pause between orders.

    Carrier endpoints rate limit (429) and the shared session cookie / browser
    are not safe to use concurrently, so there is no parallelism across orders.
    A failing order is logged and counted, it never stops the run.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        adapter_factory: TrackingAdapterFactory,
        pacing_delay_seconds: Optional[float] = None
    ):
        self.order_repository = order_repository
        self.adapter_factory = adapter_factory
        self.pacing_delay_seconds = (
            get_tracking_settings().sync_pacing_delay_seconds if pacing_delay_seconds is None else pacing_delay_seconds
        )

    async def run_sync(self) -> SyncReportSchema:
        """Track every open order and persist status, dates and events"""
        label = "Tracking sync"
        try:
            orders = self.order_repository.find_trackable_orders(SYNC_STATUSES)
        except BaseApplicationException as e:
            return await self._selection_failed(label, e)
        return await self._run(orders, dates_only=False, label=label)

    async def run_backfill(self) -> SyncReportSchema:
        """Fill missing shipped_at / estimated_delivery, status is never touched"""
        label = "Date backfill"
        try:
            orders = self.order_repository.find_trackable_orders(
                BACKFILL_STATUSES,
                exclude_systems=BACKFILL_EXCLUDED_SYSTEMS,
                missing_dates_only=True,
            )
        except BaseApplicationException as e:
            return await self._selection_failed(label, e)
        return await self._run(orders, dates_only=True, label=label)

    async def _selection_failed(self, label: str, error: BaseApplicationException) -> SyncReportSchema:
        """The order store could not be queried: nothing was tracked"""
        logger.error(f"{label}: error selecting orders: {error.message}", exc_info=True)
        await self.adapter_factory.aclose()
        return SyncReportSchema(message=f"{label} failed: {error.message}", total=0)

    async def _run(self, orders: List[Order], dates_only: bool, label: str) -> SyncReportSchema:
        total = len(orders)
        if not orders:
            logger.info(f"{label}: no orders to track")
            return SyncReportSchema(message=f"{label}: no orders to track", total=0)

        logger.info(f"{label}: {total} orders to track")
        updated = errored = skipped = 0

        try:
            for index, order in enumerate(orders):
                if index > 0 and self.pacing_delay_seconds:
                    await asyncio.sleep(self.pacing_delay_seconds)

                try:
                    if await self._process_order(order, dates_only):
                        updated += 1
                except TrackingPreconditionException as e:
                    skipped += 1
                    logger.warning(f"Order {order.order_number} skipped: {e.message}")
                except Exception as e:
                    errored += 1
                    logger.error(f"Error tracking order {order.order_number}: {str(e)}", exc_info=True)
        finally:
            await self.adapter_factory.aclose()

        message = f"{label} completed: {updated} updated, {errored} errors, {skipped} skipped of {total}"
        logger.info(message)
        return SyncReportSchema(message=message, updated=updated, errored=errored, skipped=skipped, total=total)

    async def _process_order(self, order: Order, dates_only: bool) -> bool:
        """Track, reconcile and persist one order. Returns True when something changed"""
        result = await self.adapter_factory.track_order(order)
        mutation = reconcile(order, result, dates_only=dates_only)

        carrier_name = order.carrier.name if order.carrier else "-"
        status_label = result.status.value if result.status else "-"
        logger.info(f'{order.order_number} ({carrier_name}): "{result.last_event}" -> {status_label}')

        if mutation.is_empty and mutation.tracked_at is None:
            return False

        # Lo storico stati viene scritto nello stesso commit
        self.order_repository.update_order(order.id_order, mutation)

        return not mutation.is_empty
