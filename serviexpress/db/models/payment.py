# serviexpress/db/models/payment.py
import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from serviexpress.db.base import Base


class PaymentMethod(str, enum.Enum):
    EFECTIVO = "EFECTIVO"
    TARJETA = "TARJETA"
    PSE = "PSE"
    TRANSFERENCIA = "TRANSFERENCIA"
    PAYU = "PAYU"
    STRIPE = "STRIPE"
    OTRO = "OTRO"


class PaymentStatus(str, enum.Enum):
    PENDIENTE = "PENDIENTE"
    APROBADO = "APROBADO"
    FALLIDO = "FALLIDO"
    REEMBOLSADO = "REEMBOLSADO"


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("request_id", name="uk_payment_request"),
        UniqueConstraint("external_reference", name="uk_payment_external_reference"),
        UniqueConstraint("payment_token", name="uk_payment_token"),
        CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(Enum(PaymentMethod, native_enum=False, length=20), nullable=False)
    status = Column(
        Enum(PaymentStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDIENTE,
    )
    paid_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    currency = Column(String(3), nullable=False, default="COP")
    description = Column(String(140), nullable=True)

    # gateway side
    external_reference = Column(String(120), nullable=True)
    gateway_payload = Column(Text, nullable=True)
    payment_token = Column(String(64), nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    client_email = Column(String(120), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)

    request_id = Column(Integer, ForeignKey("service_requests.id"), nullable=False)

    request = relationship("ServiceRequest", back_populates="payment")
