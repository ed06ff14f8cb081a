# serviexpress/services/requests.py
"""
Service requests (solicitudes) and their lifecycle:

    PENDIENTE -> PAGO_EN_PROCESO -> PAGO_ACEPTADO | PAGO_FALLIDO -> EN_PROCESO -> FINALIZADO

Payment states are driven by the gateway webhook (see services.payments);
everything else is moved here by the people involved.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from serviexpress.core.errors import ConflictError, DomainError, NotFoundError, PermissionDeniedError
from serviexpress.db.models.payment import PaymentStatus
from serviexpress.db.models.service import ServiceStatus
from serviexpress.db.models.service_request import RequestStatus, ServiceRequest
from serviexpress.db.models.user import ROLE_ADMIN, ROLE_PROVIDER, User
from serviexpress.repositories import service_requests as requests_repo
from serviexpress.repositories import services as services_repo

logger = logging.getLogger(__name__)

KNOWN_STATES = {s.value for s in RequestStatus}


def normalize_status(value: Optional[str]) -> str:
    """'en proceso' -> 'EN_PROCESO'. Raises DomainError for anything we don't know."""
    normalized = (value or "").strip().upper().replace(" ", "_")
    if normalized not in KNOWN_STATES:
        raise DomainError("Estado no válido.")
    return normalized


def parse_estimated_date(value: Optional[str]) -> Optional[date]:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise DomainError("Fecha estimada inválida.")


def get_request(db: Session, request_id: int) -> ServiceRequest:
    solicitud = requests_repo.get(db, request_id)
    if not solicitud:
        raise NotFoundError("Solicitud no encontrada.")
    return solicitud


def _is_client(solicitud: ServiceRequest, user: User) -> bool:
    return solicitud.client_id is not None and solicitud.client_id == user.id


def _is_provider(solicitud: ServiceRequest, user: User) -> bool:
    provider = solicitud.provider
    return provider is not None and provider.id == user.id


def create_request(
    db: Session,
    client: User,
    service_id: int,
    details: Optional[str],
    delivery_address: Optional[str],
) -> ServiceRequest:
    service = services_repo.get(db, service_id)
    if service is None or service.status != ServiceStatus.DISPONIBLE:
        raise DomainError("El servicio no está disponible.")

    solicitud = ServiceRequest(
        service=service,
        client=client,
        request_date=date.today(),
        status=RequestStatus.PENDIENTE.value,
        details=(details or "").strip() or None,
        delivery_address=(delivery_address or "").strip() or None,
    )
    db.add(solicitud)
    db.commit()
    db.refresh(solicitud)
    logger.info("Request %s created by client %s for service %s", solicitud.id, client.id, service.id)
    return solicitud


def history_for(db: Session, user: User) -> List[ServiceRequest]:
    if user.has_role(ROLE_ADMIN):
        return requests_repo.list_all_deep(db)
    if user.has_role(ROLE_PROVIDER):
        return requests_repo.list_by_provider_deep(db, user.id)
    return requests_repo.list_by_client_deep(db, user.id)


def get_visible(db: Session, user: User, request_id: int) -> ServiceRequest:
    solicitud = get_request(db, request_id)
    if user.has_role(ROLE_ADMIN) or _is_client(solicitud, user) or _is_provider(solicitud, user):
        return solicitud
    raise PermissionDeniedError("No autorizado.")


def get_owned(db: Session, client: User, request_id: int) -> ServiceRequest:
    solicitud = get_request(db, request_id)
    if not _is_client(solicitud, client):
        raise PermissionDeniedError("No autorizado.")
    return solicitud


def mark_payment_in_progress(db: Session, client: User, request_id: int) -> ServiceRequest:
    solicitud = get_owned(db, client, request_id)
    if solicitud.payment is not None and solicitud.payment.status == PaymentStatus.APROBADO:
        raise DomainError("Esta solicitud ya fue pagada.")
    solicitud.status = RequestStatus.PAGO_EN_PROCESO.value
    db.commit()
    return solicitud


def cancel(db: Session, client: User, request_id: int) -> None:
    """
    Drops the request and frees the offer again. A request whose payment was
    approved cannot be cancelled here.
    """
    solicitud = get_owned(db, client, request_id)
    payment = solicitud.payment
    if payment is not None and payment.status in (PaymentStatus.APROBADO, PaymentStatus.REEMBOLSADO):
        raise DomainError("No se puede cancelar una solicitud con pago aprobado.")

    service = solicitud.service
    if service is not None:
        service.status = ServiceStatus.DISPONIBLE
        service.client = None

    try:
        if payment is not None:
            db.delete(payment)
        db.delete(solicitud)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("No se pudo cancelar la solicitud.")
    logger.info("Request %s cancelled by client %s", request_id, client.id)


def provider_set_status(
    db: Session,
    provider: User,
    request_id: int,
    status: str,
    estimated_date: Optional[date] = None,
) -> ServiceRequest:
    solicitud = get_request(db, request_id)
    if not _is_provider(solicitud, provider):
        raise PermissionDeniedError("No autorizado.")
    solicitud.status = normalize_status(status)
    if estimated_date is not None:
        solicitud.estimated_date = estimated_date
    db.commit()
    return solicitud


def admin_set_status(db: Session, request_id: int, status: str) -> ServiceRequest:
    solicitud = get_request(db, request_id)
    if not solicitud.status_is(RequestStatus.PAGO_EN_PROCESO):
        raise DomainError("Estado no válido.")
    solicitud.status = normalize_status(status)
    db.commit()
    return solicitud


def client_set_status(
    db: Session,
    client: User,
    request_id: int,
    status: str,
    estimated_date: Optional[str] = None,
) -> ServiceRequest:
    solicitud = get_owned(db, client, request_id)
    if not solicitud.status_is(RequestStatus.PAGO_ACEPTADO, RequestStatus.EN_PROCESO):
        raise DomainError("Estado actual no permite edición.")
    new_status = normalize_status(status)
    solicitud.estimated_date = parse_estimated_date(estimated_date)
    solicitud.status = new_status
    db.commit()
    return solicitud
