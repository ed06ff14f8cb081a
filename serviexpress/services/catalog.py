# serviexpress/services/catalog.py
"""
Service offers (the catalogue): validation, CRUD, role-aware listings and the
assignment of clients to offers.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from serviexpress.core import config
from serviexpress.core.errors import ConflictError, DomainError, NotFoundError, PermissionDeniedError
from serviexpress.db.models.service import Service, ServiceStatus
from serviexpress.db.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_PROVIDER, User
from serviexpress.repositories import services as services_repo
from serviexpress.repositories import users as users_repo
from serviexpress.repositories.services import Page
from serviexpress.schemas.service import ServiceBase
from serviexpress.services.catalog_client import CatalogUnavailableError, ServiceCatalogClient

logger = logging.getLogger(__name__)

DELETE_BLOCKED = "No se puede eliminar el servicio porque está asociado a clientes o calificaciones."


def validate_service(form: ServiceBase) -> Dict[str, str]:
    errors = {}
    if not form.name or not form.name.strip():
        errors["name"] = "El nombre no puede estar vacío."
    if not form.description or not form.description.strip():
        errors["description"] = "La descripción no puede estar vacía."
    if form.price is None:
        errors["price"] = "El precio no puede estar vacío."
    elif not form.price.is_finite():
        errors["price"] = "El precio no es válido."
    elif form.price < 0:
        errors["price"] = "El precio no puede ser negativo."
    return errors


def _check(form: ServiceBase) -> None:
    errors = validate_service(form)
    if errors:
        raise DomainError(next(iter(errors.values())))


def get_service(db: Session, service_id: int) -> Service:
    service = services_repo.get(db, service_id)
    if not service:
        raise NotFoundError("Servicio no encontrado.")
    return service


def _resolve_provider(db: Session, provider_id: Optional[int]) -> Optional[User]:
    if provider_id is None:
        return None
    provider = users_repo.get(db, provider_id)
    if provider is None or not provider.has_role(ROLE_PROVIDER):
        raise DomainError("Proveedor no encontrado o inválido.")
    return provider


def _save(db: Session, service: Service) -> Service:
    db.add(service)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("No se pudo guardar el servicio.")
    db.refresh(service)
    return service


def create_service(
    db: Session,
    form: ServiceBase,
    acting_user: Optional[User] = None,
    provider_id: Optional[int] = None,
    client_id: Optional[int] = None,
) -> Service:
    """
    A provider always publishes under their own account; anybody else may name
    the provider explicitly. Status falls back to DISPONIBLE.
    """
    _check(form)
    service = Service(
        name=form.name.strip(),
        description=form.description.strip(),
        price=form.price,
        status=form.status or ServiceStatus.DISPONIBLE,
    )
    if acting_user is not None and acting_user.has_role(ROLE_PROVIDER):
        service.provider = acting_user
    else:
        service.provider = _resolve_provider(db, provider_id)

    if client_id is not None:
        client = users_repo.get(db, client_id)
        if client is None:
            raise DomainError("Cliente no encontrado.")
        service.client = client

    service = _save(db, service)
    logger.info("Service %s created (provider=%s)", service.id, service.provider_id)
    return service


def create_service_for_provider_name(db: Session, form: ServiceBase, provider_name: str) -> Service:
    """Admin form variant: the provider is typed by username, matched case-insensitively."""
    _check(form)
    wanted = (provider_name or "").strip().lower()
    provider = next(
        (p for p in users_repo.list_by_role_name(db, ROLE_PROVIDER) if (p.username or "").lower() == wanted),
        None,
    )
    if provider is None:
        raise DomainError(f"No existe un proveedor llamado '{provider_name}'.")

    service = Service(
        name=form.name.strip(),
        description=form.description.strip(),
        price=form.price,
        status=ServiceStatus.DISPONIBLE,
        provider=provider,
    )
    return _save(db, service)


def _ensure_can_manage(service: Service, acting_user: Optional[User]) -> None:
    if acting_user is None or acting_user.has_role(ROLE_ADMIN):
        return
    if acting_user.has_role(ROLE_PROVIDER) and service.provider_id == acting_user.id:
        return
    raise PermissionDeniedError("No puedes modificar un servicio de otro proveedor.")


def update_service(
    db: Session,
    service_id: int,
    form: ServiceBase,
    acting_user: Optional[User] = None,
    provider_id: Optional[int] = None,
) -> Service:
    service = get_service(db, service_id)
    _ensure_can_manage(service, acting_user)
    _check(form)

    service.name = form.name.strip()
    service.description = form.description.strip()
    service.price = form.price
    if form.status is not None:
        service.status = form.status

    if acting_user is not None and acting_user.has_role(ROLE_PROVIDER):
        service.provider = acting_user
    elif provider_id is not None:
        service.provider = _resolve_provider(db, provider_id)
    return _save(db, service)


def delete_service(db: Session, service_id: int, acting_user: Optional[User] = None) -> None:
    service = get_service(db, service_id)
    _ensure_can_manage(service, acting_user)
    try:
        db.delete(service)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Delete of service %s blocked by foreign keys", service_id)
        raise ConflictError(DELETE_BLOCKED)
    logger.info("Service %s deleted", service_id)


def _as_page(items: List[Service]) -> Page:
    return Page(items=items, number=0, size=max(len(items), 1), total=len(items))


def list_for_role(db: Session, user: User, name: Optional[str] = None, page: int = 0) -> Page:
    """
    CLIENTE: DISPONIBLE offers only. PROVEEDOR: their own offers. ADMIN: everything.
    A name search returns every match on a single page.
    """
    name = (name or "").strip()
    size = config.LIST_PAGE_SIZE

    if user.has_role(ROLE_PROVIDER):
        if name:
            return _as_page(services_repo.search_by_provider_and_name(db, user.id, name))
        return _as_page(services_repo.list_by_provider(db, user.id))

    if user.has_role(ROLE_ADMIN):
        if name:
            return _as_page(services_repo.search_by_name(db, name))
        return services_repo.page_all(db, page, size)

    if name:
        return _as_page(services_repo.search_by_status_and_name(db, ServiceStatus.DISPONIBLE, name))
    return services_repo.page_by_status(db, ServiceStatus.DISPONIBLE, page, size)


def list_available_page(db: Session, page: int = 0) -> Page:
    return services_repo.page_by_status(db, ServiceStatus.DISPONIBLE, page, config.HOME_PAGE_SIZE)


def list_requestable(db: Session) -> List[Service]:
    """DISPONIBLE offers that already have a provider."""
    return [s for s in services_repo.list_by_status(db, ServiceStatus.DISPONIBLE) if s.provider_id is not None]


def assign_client(db: Session, service_id: int, client: User) -> Service:
    if not client.has_role(ROLE_CLIENT):
        raise DomainError("Cliente no encontrado o inválido.")
    service = get_service(db, service_id)
    service.client = client
    return _save(db, service)


def release_client(db: Session, service_id: int) -> Service:
    service = get_service(db, service_id)
    service.client = None
    return _save(db, service)


def accept(db: Session, service_id: int, provider: User) -> Service:
    service = get_service(db, service_id)
    _ensure_can_manage(service, provider)
    service.status = ServiceStatus.ACEPTADA
    return _save(db, service)


def pending_for_provider(db: Session, provider_id: int) -> List[Service]:
    return services_repo.list_by_provider_and_status(db, provider_id, ServiceStatus.PENDIENTE)


def history_for_provider(db: Session, provider_id: int) -> List[Service]:
    return services_repo.list_by_provider(db, provider_id)


def history_for_client(db: Session, client_id: int) -> List[Service]:
    return services_repo.list_by_client(db, client_id)


def import_from_api(db: Session, tipo: str, client: ServiceCatalogClient) -> Service:
    service = client.fetch(tipo)
    errors = validate_service(service)
    if errors:
        logger.warning("External catalogue entry for %s rejected: %s", tipo, errors)
        raise CatalogUnavailableError(next(iter(errors.values())))
    service = _save(db, service)
    logger.info("Imported service %s from external catalogue (%s)", service.id, tipo)
    return service
