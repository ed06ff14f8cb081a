# serviexpress/services/ratings.py
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from serviexpress.core.errors import ConflictError, DomainError, PermissionDeniedError
from serviexpress.db.models.rating import Rating
from serviexpress.db.models.service_request import RequestStatus
from serviexpress.db.models.user import ROLE_PROVIDER
from serviexpress.repositories import ratings as ratings_repo
from serviexpress.repositories import service_requests as requests_repo
from serviexpress.repositories import services as services_repo
from serviexpress.repositories import users as users_repo
from serviexpress.schemas.rating import RatingForm, TopProvider

logger = logging.getLogger(__name__)


def create_or_update(db: Session, client_id: int, form: RatingForm) -> Rating:
    """
    One rating per (client, provider, service); a provider-only rating has no
    service. Submitting again overwrites score and comment and bumps the date.
    """
    if client_id is None:
        raise DomainError("No se pudo identificar al cliente.")
    if form.score is None or not 1 <= form.score <= 5:
        raise DomainError("La puntuación debe estar entre 1 y 5.")
    if form.service_id is None and form.provider_id is None:
        raise DomainError("Debes indicar un proveedor o un servicio.")

    service = None
    if form.service_id is not None:
        service = services_repo.get(db, form.service_id)
        if service is None:
            raise DomainError("Servicio no encontrado.")
        provider = service.provider
        if provider is None:
            raise DomainError("Servicio sin proveedor asignado.")
    else:
        provider = users_repo.get(db, form.provider_id)
        if provider is None or not provider.has_role(ROLE_PROVIDER):
            raise DomainError("Proveedor no encontrado.")

    rating = ratings_repo.find_for(db, client_id, provider.id, service.id if service else None)
    if rating is None:
        rating = Rating(client_id=client_id)
        db.add(rating)

    rating.provider_id = provider.id
    rating.service_id = service.id if service else None
    rating.score = form.score
    rating.comment = (form.comment or "").strip() or None
    rating.created_at = datetime.utcnow()

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Ya tienes una calificación para ese proveedor/servicio. Puedes editarla.")
    db.refresh(rating)
    logger.info("Client %s rated provider %s with %s", client_id, provider.id, rating.score)
    return rating


def form_from_request(db: Session, client_id: int, request_id: int):
    """
    Prefilled form for rating a finished request, with the names to show.
    Returns (form, service_name, provider_name).
    """
    solicitud = requests_repo.get(db, request_id)
    if solicitud is None or solicitud.client_id != client_id:
        raise PermissionDeniedError("Solicitud inválida.")
    if not solicitud.status_is(RequestStatus.FINALIZADO):
        raise DomainError("Solo puedes calificar servicios finalizados.")
    service = solicitud.service
    if service is None or service.provider is None:
        raise DomainError("Servicio sin proveedor asignado.")

    form = RatingForm.model_construct(service_id=service.id, provider_id=service.provider.id, score=None, comment=None)
    return form, service.name, service.provider.username


def list_ratings(db: Session, score: Optional[int] = None) -> List[Rating]:
    if score is None:
        return ratings_repo.list_all(db)
    return ratings_repo.list_by_score(db, score)


def top_providers(db: Session, n: int = 3, min_reviews: int = 1) -> List[TopProvider]:
    rows = ratings_repo.top_providers(db, min_reviews=min_reviews, limit=n)
    return [
        TopProvider(
            provider_id=row.provider_id,
            provider_name=row.provider_name,
            average=round(float(row.average), 2),
            total=row.total,
        )
        for row in rows
    ]
