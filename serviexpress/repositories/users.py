# serviexpress/repositories/users.py
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from serviexpress.db.models.user import Role, User


def get(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def list_all(db: Session) -> List[User]:
    return db.query(User).order_by(User.id).all()


def find_by_email_ignore_case(db: Session, email: str) -> Optional[User]:
    if not email:
        return None
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def exists_by_email_ignore_case(db: Session, email: str) -> bool:
    return find_by_email_ignore_case(db, email) is not None


def list_by_role_name(db: Session, role_name: str) -> List[User]:
    return (
        db.query(User)
        .join(Role, User.role_id == Role.id)
        .filter(func.upper(Role.name) == role_name.upper())
        .order_by(User.id)
        .all()
    )


def add(db: Session, user: User) -> User:
    db.add(user)
    db.flush()
    return user


def delete(db: Session, user: User) -> None:
    db.delete(user)
    db.flush()
