"""
Test per OrderRepository
"""
from datetime import datetime

import pytest

from freight_tracking.core.exceptions import NotFoundException
from freight_tracking.models.carrier import TrackingSystemEnum
from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.repository.order_repository import OrderRepository
from freight_tracking.services.sync.reconciliation import MutationSet
from tests.factories.carrier_factory import create_carrier
from tests.factories.order_factory import create_order


class TestFindTrackableOrders:

    def test_filters_untrackable_orders(self, db_session):
        ssw = create_carrier(db_session, name="SSW")
        untracked = create_carrier(db_session, name="Sem rastreio", tracking_system=TrackingSystemEnum.NONE)

        expected = create_order(db_session, carrier=ssw, order_number="PED-1")
        create_order(db_session, carrier=ssw, order_number="PED-2", invoice_number="")
        create_order(db_session, carrier=ssw, order_number="PED-3", sender_document=None)
        create_order(db_session, carrier=untracked, order_number="PED-4")
        create_order(db_session, carrier=ssw, order_number="PED-5", status=OrderStatusEnum.CANCELLED)
        create_order(db_session, order_number="PED-6")

        orders = OrderRepository(db_session).find_trackable_orders([OrderStatusEnum.PENDING, OrderStatusEnum.IN_TRANSIT])

        assert [order.id_order for order in orders] == [expected.id_order]
        assert orders[0].carrier.name == "SSW"

    def test_excluded_systems_and_missing_dates(self, db_session):
        ssw = create_carrier(db_session, name="SSW")
        braspress = create_carrier(db_session, name="Braspress", tracking_system=TrackingSystemEnum.BRASPRESS)

        missing_eta = create_order(db_session, carrier=ssw, order_number="PED-1", shipped_at=datetime(2024, 1, 10))
        create_order(
            db_session,
            carrier=ssw,
            order_number="PED-2",
            shipped_at=datetime(2024, 1, 10),
            estimated_delivery=datetime(2024, 1, 15),
        )
        create_order(db_session, carrier=braspress, order_number="PED-3")

        orders = OrderRepository(db_session).find_trackable_orders(
            [OrderStatusEnum.PENDING],
            exclude_systems=[TrackingSystemEnum.BRASPRESS],
            missing_dates_only=True,
        )

        assert [order.id_order for order in orders] == [missing_eta.id_order]


class TestUpdateOrder:

    def test_applies_changes_and_tracked_at(self, db_session):
        carrier = create_carrier(db_session)
        order = create_order(db_session, carrier=carrier)
        tracked_at = datetime(2024, 1, 10, 12, 0)

        updated = OrderRepository(db_session).update_order(
            order.id_order,
            MutationSet(changes={"last_tracking": "Coletado", "has_occurrence": True}, tracked_at=tracked_at),
        )

        assert updated.last_tracking == "Coletado"
        assert updated.has_occurrence is True
        assert updated.last_tracking_at == tracked_at

    def test_status_change_writes_history_in_same_commit(self, db_session):
        order = create_order(db_session)

        updated = OrderRepository(db_session).update_order(
            order.id_order,
            MutationSet(changes={"status": OrderStatusEnum.DELIVERED}, status_note="nota"),
        )

        assert updated.status == OrderStatusEnum.DELIVERED
        assert [(row.status, row.note) for row in updated.status_history] == [(OrderStatusEnum.DELIVERED, "nota")]

    def test_unknown_order_raises(self, db_session):
        with pytest.raises(NotFoundException):
            OrderRepository(db_session).update_order(999, MutationSet(changes={"last_tracking": "x"}))


class TestStatusHistoryAndListing:

    def test_append_status_history(self, db_session):
        order = create_order(db_session)
        repository = OrderRepository(db_session)

        repository.append_status_history(order.id_order, OrderStatusEnum.IN_TRANSIT, "nota")

        db_session.refresh(order)
        assert [(row.status, row.note) for row in order.status_history] == [(OrderStatusEnum.IN_TRANSIT, "nota")]

    def test_list_open_orders_newest_first(self, db_session):
        first = create_order(db_session, order_number="PED-1")
        second = create_order(db_session, order_number="PED-2", status=OrderStatusEnum.IN_TRANSIT)
        create_order(db_session, order_number="PED-3", status=OrderStatusEnum.DELIVERED)

        orders = OrderRepository(db_session).list_open_orders()

        assert [order.id_order for order in orders] == [second.id_order, first.id_order]
