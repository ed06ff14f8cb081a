# serviexpress/repositories/roles.py
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from serviexpress.db.models.user import Role


def get(db: Session, role_id: int) -> Optional[Role]:
    return db.query(Role).filter(Role.id == role_id).first()


def list_all(db: Session) -> List[Role]:
    return db.query(Role).order_by(Role.id).all()


def find_by_name_ignore_case(db: Session, name: str) -> Optional[Role]:
    return db.query(Role).filter(func.upper(Role.name) == name.upper()).first()
