# serviexpress/core/security.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from serviexpress.db.base import get_db
from serviexpress.db.models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_USER_KEY = "user_id"
SESSION_NEXT_KEY = "next_url"
LOGIN_URL = "/auth/login"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # stored value is not a hash we know (legacy plain text row)
        return False


def is_password_hash(value: str) -> bool:
    return bool(value) and pwd_context.identify(value) is not None


# --- session helpers ---

def login_session(request: Request, user: User) -> Optional[str]:
    """Store the user in the session and return the URL saved before login, if any."""
    next_url = request.session.pop(SESSION_NEXT_KEY, None)
    request.session[SESSION_USER_KEY] = user.id
    return next_url


def logout_session(request: Request) -> None:
    request.session.clear()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """
    Returns the logged in user or None.
    A session pointing at a deleted account is cleared.
    """
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return None
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        request.session.clear()
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        request.session.clear()
        return None
    return user


def require_user(request: Request, user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        # remember where the visitor was going, login sends them back there
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        if request.method == "GET":
            request.session[SESSION_NEXT_KEY] = target
        raise HTTPException(
            status_code=status.HTTP_302_FOUND,
            detail="Not authenticated",
            headers={"Location": LOGIN_URL},
        )
    return user


def require_roles(*roles: str):
    """Dependency factory: logged in user holding one of `roles`, otherwise 403."""

    def checker(user: User = Depends(require_user)) -> User:
        if not user.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
        return user

    return checker


def home_url_for(user: User) -> str:
    if user.has_role("ADMIN"):
        return "/Admins/usuarios"
    if user.has_role("PROVEEDOR"):
        return "/proveedor/servicios"
    return "/servicio"
