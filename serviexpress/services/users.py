# serviexpress/services/users.py
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from serviexpress.core.errors import ConflictError, DomainError, NotFoundError
from serviexpress.core.security import hash_password, is_password_hash
from serviexpress.db.models.user import ROLE_CLIENT, ROLE_PROVIDER, User
from serviexpress.repositories import roles as roles_repo
from serviexpress.repositories import users as users_repo
from serviexpress.schemas.user import UserForm
from serviexpress.services.auth import get_or_create_role

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = users_repo.get(db, user_id)
    if not user:
        raise NotFoundError("Usuario no encontrado.")
    return user


def list_users(db: Session) -> List[User]:
    return users_repo.list_all(db)


def list_providers(db: Session) -> List[User]:
    return users_repo.list_by_role_name(db, ROLE_PROVIDER)


def save_user(db: Session, user: User) -> User:
    """Persist `user`, hashing password_hash first when it still holds a plain password."""
    if user.password_hash and not is_password_hash(user.password_hash):
        user.password_hash = hash_password(user.password_hash)
    try:
        users_repo.add(db, user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("El correo ya está registrado.")
    db.refresh(user)
    return user


def _email_taken(db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    other = users_repo.find_by_email_ignore_case(db, email)
    return other is not None and other.id != exclude_id


def create_user(db: Session, form: UserForm) -> User:
    if not form.password:
        raise DomainError("La contraseña es obligatoria.")
    if _email_taken(db, form.email):
        raise DomainError("El correo ya está registrado.")

    role = roles_repo.get(db, form.role_id) if form.role_id else None
    if role is None:
        role = get_or_create_role(db, ROLE_CLIENT)

    user = User(
        username=form.username.strip(),
        email=form.email.strip().lower(),
        password_hash=form.password,
        phone=form.phone,
        city=form.city,
        role=role,
    )
    user = save_user(db, user)
    logger.info("Admin created user %s with role %s", user.email, user.role_name)
    return user


def update_user(db: Session, user_id: int, form: UserForm) -> User:
    user = get_user(db, user_id)
    if _email_taken(db, form.email, exclude_id=user.id):
        raise DomainError("El correo ya está registrado.")

    user.username = form.username.strip()
    user.email = form.email.strip().lower()
    user.phone = form.phone
    user.city = form.city
    if form.role_id:
        role = roles_repo.get(db, form.role_id)
        if role is None:
            raise DomainError("Rol no válido.")
        user.role = role
    if form.password:
        user.password_hash = form.password
    return save_user(db, user)


def change_password(db: Session, user_id: int, new_password: str) -> User:
    if not new_password or not new_password.strip():
        raise DomainError("La nueva contraseña no puede estar vacía.")
    user = get_user(db, user_id)
    user.password_hash = hash_password(new_password)
    db.commit()
    return user


def delete_user(db: Session, user_id: int, acting_user: User) -> None:
    if acting_user.id == user_id:
        raise DomainError("No puedes eliminar tu propia cuenta.")
    user = get_user(db, user_id)
    try:
        users_repo.delete(db, user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("No se puede eliminar el usuario: tiene servicios o solicitudes asociadas.")
    logger.info("User %s deleted by %s", user_id, acting_user.id)


def _provider(db: Session, provider_id: int) -> User:
    user = get_user(db, provider_id)
    if not user.has_role(ROLE_PROVIDER):
        raise DomainError("El usuario no es un proveedor.")
    return user


def set_availability(db: Session, provider_id: int, available: bool) -> User:
    provider = _provider(db, provider_id)
    provider.availability = bool(available)
    db.commit()
    return provider


def set_rate(db: Session, provider_id: int, rate: float) -> User:
    if rate is None or rate < 0:
        raise DomainError("La tarifa debe ser un valor positivo.")
    provider = _provider(db, provider_id)
    provider.rate = float(rate)
    db.commit()
    return provider
