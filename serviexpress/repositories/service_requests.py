# serviexpress/repositories/service_requests.py
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from serviexpress.db.models.service import Service
from serviexpress.db.models.service_request import ServiceRequest


def _deep(db: Session):
    # service, its provider and the client are always rendered together
    return (
        db.query(ServiceRequest)
        .options(
            joinedload(ServiceRequest.service).joinedload(Service.provider),
            joinedload(ServiceRequest.client),
            joinedload(ServiceRequest.payment),
        )
        .order_by(ServiceRequest.request_date.desc(), ServiceRequest.id.desc())
    )


def get(db: Session, request_id: int) -> Optional[ServiceRequest]:
    return db.query(ServiceRequest).filter(ServiceRequest.id == request_id).first()


def list_all_deep(db: Session) -> List[ServiceRequest]:
    return _deep(db).all()


def list_by_client_deep(db: Session, client_id: int) -> List[ServiceRequest]:
    return _deep(db).filter(ServiceRequest.client_id == client_id).all()


def list_by_provider_deep(db: Session, provider_id: int) -> List[ServiceRequest]:
    return (
        _deep(db)
        .join(Service, ServiceRequest.service_id == Service.id)
        .filter(Service.provider_id == provider_id)
        .all()
    )


def list_by_status(db: Session, status: str) -> List[ServiceRequest]:
    return db.query(ServiceRequest).filter(ServiceRequest.status == status).order_by(ServiceRequest.id).all()


def count_by_provider(db: Session, provider_id: int) -> int:
    return (
        db.query(func.count(ServiceRequest.id))
        .join(Service, ServiceRequest.service_id == Service.id)
        .filter(Service.provider_id == provider_id)
        .scalar()
        or 0
    )
