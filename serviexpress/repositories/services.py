# serviexpress/repositories/services.py
import math
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from serviexpress.db.models.service import Service, ServiceStatus


@dataclass
class Page:
    items: list = field(default_factory=list)
    number: int = 0
    size: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


def paginate(query: Query, page: int, size: int) -> Page:
    page = max(page, 0)
    total = query.order_by(None).count()
    items = query.offset(page * size).limit(size).all()
    return Page(items=items, number=page, size=size, total=total)


def _name_like(name: str):
    return func.lower(Service.name).like(f"%{name.strip().lower()}%")


def get(db: Session, service_id: int) -> Optional[Service]:
    return db.query(Service).filter(Service.id == service_id).first()


def list_all(db: Session) -> List[Service]:
    return db.query(Service).order_by(Service.id).all()


def page_all(db: Session, page: int, size: int) -> Page:
    return paginate(db.query(Service).order_by(Service.id), page, size)


def page_by_status(db: Session, status: ServiceStatus, page: int, size: int) -> Page:
    q = db.query(Service).filter(Service.status == status).order_by(Service.id.desc())
    return paginate(q, page, size)


def list_by_status(db: Session, status: ServiceStatus) -> List[Service]:
    return db.query(Service).filter(Service.status == status).order_by(Service.id).all()


def list_by_provider(db: Session, provider_id: int) -> List[Service]:
    return db.query(Service).filter(Service.provider_id == provider_id).order_by(Service.id).all()


def list_by_provider_and_status(db: Session, provider_id: int, status: ServiceStatus) -> List[Service]:
    return (
        db.query(Service)
        .filter(Service.provider_id == provider_id, Service.status == status)
        .order_by(Service.id)
        .all()
    )


def list_by_client(db: Session, client_id: int) -> List[Service]:
    return db.query(Service).filter(Service.client_id == client_id).order_by(Service.id).all()


def search_by_name(db: Session, name: str) -> List[Service]:
    return db.query(Service).filter(_name_like(name)).order_by(Service.id).all()


def search_by_status_and_name(db: Session, status: ServiceStatus, name: str) -> List[Service]:
    return (
        db.query(Service)
        .filter(Service.status == status, _name_like(name))
        .order_by(Service.id)
        .all()
    )


def search_by_provider_and_name(db: Session, provider_id: int, name: str) -> List[Service]:
    return (
        db.query(Service)
        .filter(Service.provider_id == provider_id, _name_like(name))
        .order_by(Service.id)
        .all()
    )


def count_by_provider(db: Session, provider_id: int) -> int:
    return db.query(func.count(Service.id)).filter(Service.provider_id == provider_id).scalar() or 0
