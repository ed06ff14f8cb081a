# serviexpress/services/auth.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from serviexpress.core.errors import DomainError
from serviexpress.core.security import hash_password, verify_password
from serviexpress.db.models.user import ROLE_CLIENT, Role, User
from serviexpress.repositories import roles as roles_repo
from serviexpress.repositories import users as users_repo
from serviexpress.schemas.user import RegistrationForm

logger = logging.getLogger(__name__)


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = users_repo.find_by_email_ignore_case(db, email)
    if not user or not verify_password(password or "", user.password_hash):
        return None
    return user


def get_or_create_role(db: Session, name: str) -> Role:
    role = roles_repo.find_by_name_ignore_case(db, name)
    if role is None:
        role = Role(name=name)
        db.add(role)
        db.flush()
    return role


def register_client(db: Session, form: RegistrationForm) -> User:
    """Public sign-up. Every self-registered account is a CLIENTE."""
    email = form.email.strip().lower()
    if users_repo.exists_by_email_ignore_case(db, email):
        raise DomainError("El correo ya está registrado.")

    user = User(
        username=form.username,
        email=email,
        password_hash=hash_password(form.password),
        phone=form.phone,
        city=form.city,
        role=get_or_create_role(db, ROLE_CLIENT),
    )
    users_repo.add(db, user)
    db.commit()
    db.refresh(user)
    logger.info("Registered client %s (id=%s)", user.email, user.id)
    return user
