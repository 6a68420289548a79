from sqlalchemy import Integer, Column, String, Boolean, Enum
from sqlalchemy.orm import relationship
from freight_tracking.database import Base
import enum


class TrackingSystemEnum(str, enum.Enum):
    NONE = "NONE"
    SSW = "SSW"
    SENIOR = "SENIOR"
    ATUAL_CARGAS = "ATUAL_CARGAS"
    RODONAVES = "RODONAVES"
    SAO_MIGUEL = "SAO_MIGUEL"
    BRASPRESS = "BRASPRESS"
    PORTAL = "PORTAL"


class Carrier(Base):
    """
        Transportadora con il sistema di tracking configurato.

        tracking_identifier dipende da tracking_system: sigla della rete SSW,
        tenant Senior, codice del portale, oppure "remetente"/"destinatario"
        per scegliere il documento da usare nella consulta.
    """
    __tablename__ = "carriers"

    id_carrier = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    document = Column(String(20), default="")
    is_active = Column(Boolean, default=True)
    tracking_system = Column(Enum(TrackingSystemEnum), nullable=False, default=TrackingSystemEnum.NONE, index=True)
    tracking_identifier = Column(String(100), nullable=True)

    orders = relationship("Order", back_populates="carrier")
