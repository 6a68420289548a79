from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from freight_tracking.models.carrier import Carrier, TrackingSystemEnum


def create_carrier_data(
    name: str = "Carrier Test",
    tracking_system: TrackingSystemEnum = TrackingSystemEnum.SSW,
    tracking_identifier: Optional[str] = None,
    document: str = "11222333000181",
) -> Dict[str, Any]:
    """Crea dati per un Carrier"""
    return {
        "name": name,
        "document": document,
        "is_active": True,
        "tracking_system": tracking_system,
        "tracking_identifier": tracking_identifier,
    }


def build_carrier(**kwargs) -> Carrier:
    """Carrier non persistito (per test senza DB)"""
    return Carrier(**create_carrier_data(**kwargs))


def create_carrier(db: Session, **kwargs) -> Carrier:
    """Crea e salva un Carrier"""
    carrier = build_carrier(**kwargs)
    db.add(carrier)
    db.commit()
    db.refresh(carrier)
    return carrier
