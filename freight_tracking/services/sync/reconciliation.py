"""
Reconciliation of a fresh TrackingResult against the persisted order.

reconcile() is pure: it reads the order and returns the minimal set of field
changes, it never touches the session. The repository applies the result.

Field rules, in order:
    shipped_at          filled only when empty, never overwritten
    estimated_delivery  last carrier value wins
    last_tracking       latest event text, last_tracking_at stamped on every located poll
    has_occurrence      follows the carrier
    tracking_events     full history replaces the stored list; a single event is
                        prepended only when its text differs from the stored latest
    status              only on a real change; DELIVERED also stamps delivered_at,
                        every change adds one status history row
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from freight_tracking.models.order import Order, OrderStatusEnum
from freight_tracking.schemas.tracking_schema import TrackingEventSchema, TrackingResult

STATUS_NOTE_PREFIX = "Atualizado automaticamente via rastreamento"

LAST_TRACKING_MAX_LENGTH = 500
STATUS_NOTE_MAX_LENGTH = 600


@dataclass
class MutationSet:
    """Fields of an order that need to change, plus the poll timestamp"""
    changes: Dict[str, Any] = field(default_factory=dict)
    tracked_at: Optional[datetime] = None
    status_note: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        """tracked_at alone is not a change: polling an unchanged state is a no-op"""
        return not self.changes

    @property
    def status_changed(self) -> bool:
        return "status" in self.changes

    @property
    def new_status(self) -> Optional[OrderStatusEnum]:
        return self.changes.get("status")


def serialize_event(event: TrackingEventSchema) -> Dict[str, Any]:
    """JSON form stored in Order.tracking_events"""
    return {
        "date": event.date.isoformat() if event.date else None,
        "description": event.description,
    }


def serialize_events(events: List[TrackingEventSchema]) -> List[Dict[str, Any]]:
    return [serialize_event(event) for event in events]


def reconcile(
    order: Order,
    result: TrackingResult,
    now: Optional[datetime] = None,
    dates_only: bool = False
) -> MutationSet:
    """
    Compute the mutation that brings the order in line with the tracking result

    Args:
        order: persisted order (read only)
        result: normalized adapter output
        now: clock for timestamps, defaults to datetime.now()
        dates_only: backfill mode, only shipped_at / estimated_delivery may change

    Returns:
        MutationSet, empty when nothing has to be written
    """
    mutation = MutationSet()
    if not result.located:
        return mutation

    now = now or datetime.now()
    changes = mutation.changes

    if order.shipped_at is None and result.shipped_at is not None:
        changes["shipped_at"] = result.shipped_at

    if result.estimated_delivery is not None and result.estimated_delivery != order.estimated_delivery:
        changes["estimated_delivery"] = result.estimated_delivery

    if dates_only:
        return mutation

    last_event = result.last_event[:LAST_TRACKING_MAX_LENGTH] if result.last_event else None
    if last_event:
        mutation.tracked_at = now
        if last_event != order.last_tracking:
            changes["last_tracking"] = last_event

    if result.has_occurrence != bool(order.has_occurrence):
        changes["has_occurrence"] = result.has_occurrence

    stored_events = list(order.tracking_events or [])
    if result.events:
        new_events = serialize_events(result.events)
        if new_events != stored_events:
            changes["tracking_events"] = new_events
    elif last_event:
        latest_stored = stored_events[0].get("description") if stored_events else None
        if latest_stored != last_event:
            changes["tracking_events"] = [{"date": now.isoformat(), "description": last_event}] + stored_events

    if result.status is not None and result.status != order.status:
        changes["status"] = result.status
        if result.status == OrderStatusEnum.DELIVERED:
            changes["delivered_at"] = now
        note = f"{STATUS_NOTE_PREFIX}: {last_event}" if last_event else STATUS_NOTE_PREFIX
        mutation.status_note = note[:STATUS_NOTE_MAX_LENGTH]

    return mutation
