# serviexpress/services/payments.py
"""
Payment lifecycle against the Wompi gateway.

A request owns at most one payment row. Starting a checkout (re)uses that row,
keeps a still valid reference or stamps a fresh one, and leaves it PENDIENTE.
The gateway then reports the outcome through the events webhook, which is
the only thing that moves a payment to a final state.
"""
import hmac
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from serviexpress.core.errors import ConflictError, DomainError, NotFoundError, PermissionDeniedError, SignatureError
from serviexpress.db.models.payment import Payment, PaymentMethod, PaymentStatus
from serviexpress.db.models.service_request import RequestStatus, ServiceRequest
from serviexpress.db.models.user import ROLE_ADMIN, User
from serviexpress.payments import signature as sig
from serviexpress.payments.settings import WompiSettings
from serviexpress.repositories import payments as payments_repo
from serviexpress.repositories import service_requests as requests_repo
from serviexpress.schemas.payment import CheckoutInit

logger = logging.getLogger(__name__)

# gateway status -> ours
GATEWAY_STATUS = {
    "APPROVED": PaymentStatus.APROBADO,
    "APROBADO": PaymentStatus.APROBADO,
    "DECLINED": PaymentStatus.FALLIDO,
    "ERROR": PaymentStatus.FALLIDO,
    "VOIDED": PaymentStatus.FALLIDO,
    "FALLIDO": PaymentStatus.FALLIDO,
    "REFUNDED": PaymentStatus.REEMBOLSADO,
    "REEMBOLSADO": PaymentStatus.REEMBOLSADO,
}

ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDIENTE: {PaymentStatus.APROBADO, PaymentStatus.FALLIDO, PaymentStatus.REEMBOLSADO},
    PaymentStatus.APROBADO: {PaymentStatus.REEMBOLSADO},
}

# request states the webhook is allowed to overwrite
REQUEST_STATES_MOVED_BY_PAYMENT = (
    RequestStatus.PENDIENTE,
    RequestStatus.PAGO_EN_PROCESO,
    RequestStatus.PAGO_FALLIDO,
)


@dataclass
class CheckoutSession:
    """Everything the checkout page (or an API client) needs to send the payer to Wompi."""

    payment_id: int
    reference: str
    amount_in_cents: int
    currency: str
    expiration_iso: str
    signature: str
    public_key: str
    redirect_url: str
    checkout_url: str
    use_widget: bool
    base_in_cents: int = 0
    delivery_fee_cents: int = 0


def map_gateway_status(value: Optional[str]) -> PaymentStatus:
    return GATEWAY_STATUS.get((value or "").strip().upper(), PaymentStatus.PENDIENTE)


def can_transition(current: PaymentStatus, new: PaymentStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _reusable(payment: Optional[Payment], amount_in_cents: int, currency: str, now: datetime) -> bool:
    """A pending checkout that has not expired and asks for the same money keeps its reference."""
    if payment is None or payment.status != PaymentStatus.PENDIENTE:
        return False
    if not payment.external_reference or payment.token_expires_at is None:
        return False
    if payment.token_expires_at <= now.astimezone(timezone.utc).replace(tzinfo=None):
        return False
    return sig.to_cents(payment.amount) == amount_in_cents and payment.currency == currency


def _amount_matches(payment: Payment, transaction: dict) -> bool:
    try:
        paid = int(transaction.get("amount_in_cents"))
    except (TypeError, ValueError):
        return False
    currency = str(transaction.get("currency") or "").upper()
    return paid == sig.to_cents(payment.amount) and currency == (payment.currency or "").upper()


def start_checkout(
    db: Session,
    settings: WompiSettings,
    solicitud: ServiceRequest,
    amount_in_cents: int,
    method: PaymentMethod,
    description: Optional[str],
    email: Optional[str],
    redirect_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CheckoutSession:
    if amount_in_cents < 0:
        raise DomainError("El monto no puede ser negativo.")

    payment = solicitud.payment or payments_repo.find_by_request(db, solicitud.id)
    if payment is not None and payment.status == PaymentStatus.APROBADO:
        raise DomainError("Esta solicitud ya fue pagada.")
    if payment is not None and payment.status == PaymentStatus.REEMBOLSADO:
        raise DomainError("El pago de esta solicitud fue reembolsado.")

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if _reusable(payment, amount_in_cents, settings.currency, now):
        # the payer may already hold a checkout for this reference
        reference = payment.external_reference
        expiration_iso = sig.format_iso_utc(payment.token_expires_at)
        logger.info("Checkout for request %s reuses reference %s", solicitud.id, reference)
    else:
        if payment is None:
            payment = Payment(request=solicitud)
            db.add(payment)

        expires = sig.expiration_time(now, settings.expiration_minutes)
        expiration_iso = sig.format_iso_utc(expires)
        reference = sig.build_reference(solicitud.id, int(now.timestamp() * 1000))

        payment.amount = sig.from_cents(amount_in_cents)
        payment.method = method
        payment.status = PaymentStatus.PENDIENTE
        payment.currency = settings.currency
        payment.description = (description or "")[:140] or None
        payment.external_reference = reference
        payment.payment_token = secrets.token_hex(32)
        payment.token_expires_at = expires.astimezone(timezone.utc).replace(tzinfo=None)
        payment.client_email = email
        payment.paid_at = _utcnow()
        payment.confirmed_at = None
        payment.gateway_payload = None

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("No se pudo registrar el pago, intenta de nuevo.")
        db.refresh(payment)

    signature = sig.integrity_signature(
        reference, amount_in_cents, settings.currency, settings.integrity_secret, expiration_iso
    )
    redirect = redirect_url or settings.redirect_url
    session = CheckoutSession(
        payment_id=payment.id,
        reference=reference,
        amount_in_cents=amount_in_cents,
        currency=settings.currency,
        expiration_iso=expiration_iso,
        signature=signature,
        public_key=settings.public_key,
        redirect_url=redirect,
        checkout_url=sig.checkout_url(
            settings.checkout_url,
            settings.public_key,
            settings.currency,
            amount_in_cents,
            reference,
            signature,
            redirect_url=redirect,
            expiration_iso=expiration_iso,
            customer_email=email,
        ),
        use_widget=settings.use_widget,
    )
    logger.info(
        "Checkout started for request %s: payment=%s reference=%s amount=%s %s",
        solicitud.id, payment.id, reference, amount_in_cents, settings.currency,
    )
    return session


def checkout_for_request(
    db: Session,
    settings: WompiSettings,
    user: User,
    request_id: int,
    now: Optional[datetime] = None,
) -> CheckoutSession:
    """
    Invoice flow: service price plus the delivery fee, never below the
    gateway minimum. Only the client who made the request (or an admin) pays.
    """
    solicitud = requests_repo.get(db, request_id)
    if solicitud is None:
        raise NotFoundError("Solicitud no encontrada.")
    if solicitud.client_id != user.id and not user.has_role(ROLE_ADMIN):
        raise PermissionDeniedError("No autorizado.")
    if solicitud.service is None:
        raise DomainError("La solicitud no tiene un servicio asociado.")

    base = sig.to_cents(solicitud.service.price)
    total = max(base + settings.delivery_fee_cents, settings.min_amount_cents)
    description = f"Solicitud #{solicitud.id} - {solicitud.service.name}"
    email = solicitud.client.email if solicitud.client is not None else user.email

    session = start_checkout(db, settings, solicitud, total, PaymentMethod.OTRO, description, email, now=now)
    session.base_in_cents = base
    session.delivery_fee_cents = settings.delivery_fee_cents
    return session


def init_checkout(db: Session, settings: WompiSettings, dto: CheckoutInit) -> str:
    """REST flow: the caller states amount and method. Returns the checkout URL."""
    solicitud = requests_repo.get(db, dto.request_id)
    if solicitud is None:
        raise NotFoundError("Solicitud no encontrada.")
    session = start_checkout(
        db,
        settings,
        solicitud,
        sig.to_cents(dto.amount),
        dto.method,
        dto.description,
        dto.email,
        redirect_url=dto.return_url,
    )
    logger.info("Payment %s will be notified at %s", session.payment_id, dto.notify_url)
    return session.checkout_url


def process_webhook(
    db: Session,
    settings: WompiSettings,
    payload: Union[str, bytes],
    header_checksum: Optional[str] = None,
) -> Payment:
    """
    Reconcile one gateway event. Raises DomainError for a malformed body,
    SignatureError for a bad checksum and NotFoundError for an unknown reference.
    """
    text = payload.decode("utf-8") if isinstance(payload, bytes) else (payload or "")
    try:
        event = json.loads(text)
    except ValueError:
        raise DomainError("El cuerpo del evento no es JSON válido.")
    if not isinstance(event, dict):
        raise DomainError("El cuerpo del evento no es un objeto.")

    data = event.get("data")
    transaction = data.get("transaction") if isinstance(data, dict) else None
    if not isinstance(transaction, dict):
        raise DomainError("El evento no trae data.transaction.")
    reference = transaction.get("reference")
    gateway_status = transaction.get("status")
    if not reference or not gateway_status:
        raise DomainError("El evento no trae referencia o estado.")

    if settings.events_secret:
        signature_block = event.get("signature") if isinstance(event.get("signature"), dict) else {}
        received = signature_block.get("checksum") or header_checksum
        if not received:
            logger.warning("Webhook for %s rejected: no checksum", reference)
            raise SignatureError("Falta la firma del evento.")
        try:
            expected = sig.event_checksum(event, settings.events_secret)
        except KeyError as exc:
            raise DomainError(f"El evento no trae la propiedad firmada {exc}.")
        if not hmac.compare_digest(expected.lower(), str(received).strip().lower()):
            logger.warning("Webhook for %s rejected: checksum mismatch", reference)
            raise SignatureError("Firma del evento inválida.")

    status = map_gateway_status(gateway_status)
    if status == PaymentStatus.APROBADO:
        payment = payments_repo.find_by_external_reference(db, reference)
        if payment is None:
            raise NotFoundError(f"Pago no encontrado por referencia: {reference}")
        if not _amount_matches(payment, transaction):
            payment.gateway_payload = text
            db.commit()
            logger.warning(
                "Webhook for %s rejected: paid %s %s, expected %s %s",
                reference, transaction.get("amount_in_cents"), transaction.get("currency"),
                sig.to_cents(payment.amount), payment.currency,
            )
            raise DomainError("El monto o la moneda del evento no coinciden con el pago.")

    return update_status_by_reference(db, reference, status, text)


def update_status_by_reference(db: Session, reference: str, status: PaymentStatus, payload: Optional[str]) -> Payment:
    payment = payments_repo.find_by_external_reference(db, reference)
    if payment is None:
        raise NotFoundError(f"Pago no encontrado por referencia: {reference}")

    payment.gateway_payload = payload
    current = payment.status

    if current == status:
        logger.info("Payment %s already %s, event stored only", payment.id, status.value)
    elif not can_transition(current, status):
        logger.warning("Payment %s: ignored transition %s -> %s", payment.id, current.value, status.value)
    else:
        payment.status = status
        solicitud = payment.request
        if status == PaymentStatus.APROBADO:
            payment.confirmed_at = _utcnow()
            _move_request(solicitud, RequestStatus.PAGO_ACEPTADO)
        elif status == PaymentStatus.FALLIDO:
            _move_request(solicitud, RequestStatus.PAGO_FALLIDO)
        logger.info("Payment %s moved %s -> %s (reference %s)", payment.id, current.value, status.value, reference)

    db.commit()
    db.refresh(payment)
    return payment


def _move_request(solicitud: Optional[ServiceRequest], new_status: RequestStatus) -> None:
    if solicitud is None:
        return
    if solicitud.status is None or solicitud.status_is(*REQUEST_STATES_MOVED_BY_PAYMENT):
        solicitud.status = new_status.value


def get_payment(db: Session, payment_id: int) -> Payment:
    payment = payments_repo.get(db, payment_id)
    if payment is None:
        raise NotFoundError("Pago no encontrado.")
    return payment


def list_payments(db: Session) -> List[Payment]:
    return payments_repo.list_all(db)
