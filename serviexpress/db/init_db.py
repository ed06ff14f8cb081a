# serviexpress/db/init_db.py
import logging

from sqlalchemy.orm import Session

from serviexpress.core import config
from serviexpress.core.security import hash_password
from serviexpress.db.base import Base
from serviexpress.db.models.payment import Payment  # noqa: F401
from serviexpress.db.models.rating import Rating  # noqa: F401
from serviexpress.db.models.service import Service  # noqa: F401
from serviexpress.db.models.service_request import ServiceRequest  # noqa: F401
from serviexpress.db.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_PROVIDER, Role, User

logger = logging.getLogger(__name__)

DEFAULT_ROLES = (ROLE_ADMIN, ROLE_CLIENT, ROLE_PROVIDER)


def create_tables(engine) -> None:
    """Create every table registered on Base (all models are imported above)."""
    Base.metadata.create_all(bind=engine)


def seed_defaults(db: Session) -> None:
    """
    Make sure the three roles exist and, when ADMIN_EMAIL / ADMIN_PASSWORD are
    configured, that an administrator account exists too.
    Safe to run on every startup.
    """
    existing = {r.name.upper() for r in db.query(Role).all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.add(Role(name=name))
            logger.info("Created role %s", name)
    db.commit()

    if config.ADMIN_EMAIL and config.ADMIN_PASSWORD:
        email = config.ADMIN_EMAIL.strip().lower()
        if not db.query(User).filter(User.email == email).first():
            admin_role = db.query(Role).filter(Role.name == ROLE_ADMIN).first()
            db.add(User(
                username="Administrador",
                email=email,
                password_hash=hash_password(config.ADMIN_PASSWORD),
                role=admin_role,
            ))
            db.commit()
            logger.info("Created bootstrap administrator %s", email)
