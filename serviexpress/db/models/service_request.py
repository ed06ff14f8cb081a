# serviexpress/db/models/service_request.py
import enum

from sqlalchemy import Column, Date, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from serviexpress.db.base import Base


class RequestStatus(str, enum.Enum):
    """Known values of ServiceRequest.status. The column itself is free text."""

    PENDIENTE = "PENDIENTE"
    PAGO_EN_PROCESO = "PAGO_EN_PROCESO"
    PAGO_ACEPTADO = "PAGO_ACEPTADO"
    PAGO_FALLIDO = "PAGO_FALLIDO"
    EN_PROCESO = "EN_PROCESO"
    FINALIZADO = "FINALIZADO"


class ServiceRequest(Base):
    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True, index=True)

    request_date = Column(Date, nullable=True)
    status = Column(String(40), nullable=True)

    details = Column(String(500), nullable=True)
    delivery_address = Column(String(180), nullable=True)
    estimated_date = Column(Date, nullable=True)

    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # relationships
    service = relationship("Service", back_populates="requests")
    client = relationship("User", foreign_keys=[client_id])
    payment = relationship("Payment", back_populates="request", uselist=False)

    @property
    def provider(self):
        return self.service.provider if self.service is not None else None

    def status_is(self, *values) -> bool:
        current = (self.status or "").strip().upper().replace(" ", "_")
        return current in {getattr(v, "value", v) for v in values}
