from pydantic import BaseModel, Field
from typing import List, Optional, Any
from datetime import datetime

from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.models.carrier import TrackingSystemEnum


class TrackingEventSchema(BaseModel):
    """Single carrier-reported occurrence"""
    date: Optional[datetime] = Field(None, description="Event date, when the carrier reports one")
    description: str = Field(..., description="Event description")


class TrackingResult(BaseModel):
    """
    Normalized output of a carrier adapter.

    status is always derived from the event text (or an explicit carrier
    code table), never copied from the carrier. events, when present, are
    ordered most-recent-first.
    """
    status: Optional[OrderStatusEnum] = Field(None, description="Canonical status of the latest event")
    last_event: Optional[str] = Field(None, description="Description of the latest event")
    shipped_at: Optional[datetime] = Field(None, description="Carrier-reported collection date")
    estimated_delivery: Optional[datetime] = Field(None, description="Carrier-reported ETA")
    has_occurrence: bool = Field(False, description="Any event signals a delivery problem")
    events: Optional[List[TrackingEventSchema]] = Field(None, description="Full history, most recent first")
    located: bool = Field(True, description="False when the carrier does not know the document")
    raw: Optional[Any] = Field(None, exclude=True, description="Raw payload for diagnostics")

    @classmethod
    def not_located(cls, invoice_number: str, document: Optional[str] = None) -> "TrackingResult":
        """Benign empty result: the carrier has no data for this document (yet)"""
        reference = f"NF {invoice_number}"
        if document:
            reference += f" / CNPJ {document}"
        return cls(status=None, last_event=f"Não localizado ({reference})", located=False)


class SyncReportSchema(BaseModel):
    """Aggregate outcome of a sync or backfill run"""
    message: str = Field(..., description="Human readable summary")
    updated: int = Field(0, description="Orders with persisted changes")
    errored: int = Field(0, description="Orders whose tracking or persistence failed")
    skipped: int = Field(0, description="Orders skipped for missing carrier configuration")
    total: int = Field(0, description="Orders considered")


class OrderTrackingStatusSchema(BaseModel):
    """Last tracking information of an open order"""
    id_order: int
    order_number: str
    invoice_number: Optional[str] = None
    status: OrderStatusEnum
    last_tracking: Optional[str] = None
    last_tracking_at: Optional[datetime] = None
    has_occurrence: bool = False
    carrier_name: Optional[str] = None
    tracking_system: Optional[TrackingSystemEnum] = None
