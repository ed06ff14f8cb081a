# serviexpress/db/models/service.py
import enum

from sqlalchemy import CheckConstraint, Column, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from serviexpress.db.base import Base


class ServiceStatus(str, enum.Enum):
    PENDIENTE = "PENDIENTE"
    DISPONIBLE = "DISPONIBLE"
    OCUPADO = "OCUPADO"
    ACEPTADA = "ACEPTADA"
    RECHAZADA = "RECHAZADA"
    CANCELADA = "CANCELADA"
    COMPLETADA = "COMPLETADA"


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (CheckConstraint("price >= 0", name="ck_service_price_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(200), nullable=False)
    description = Column(String(200), nullable=False)

    # Pricing (COP, two decimals)
    price = Column(Numeric(12, 2), nullable=False)

    status = Column(
        Enum(ServiceStatus, native_enum=False, length=20),
        nullable=False,
        default=ServiceStatus.PENDIENTE,
    )

    # Foreign keys, both optional: an offer may have no provider yet and no client
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Relationships
    provider = relationship("User", back_populates="services", foreign_keys=[provider_id])
    client = relationship("User", foreign_keys=[client_id])
    # passive: deleting an offer that still has requests must fail on the FK
    requests = relationship("ServiceRequest", back_populates="service", passive_deletes="all")
