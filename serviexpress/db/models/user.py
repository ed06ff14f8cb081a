# serviexpress/db/models/user.py
from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from serviexpress.db.base import Base

ROLE_ADMIN = "ADMIN"
ROLE_CLIENT = "CLIENTE"
ROLE_PROVIDER = "PROVEEDOR"


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(80), nullable=False, unique=True, index=True)

    users = relationship("User", back_populates="role")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(80), nullable=False)
    email = Column(String(120), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    role_id = Column(Integer, ForeignKey("roles.id"), nullable=True)

    phone = Column(String(30), nullable=True)
    city = Column(String(80), nullable=True)

    # provider-only fields
    availability = Column(Boolean, nullable=False, default=True)
    rate = Column(Float, nullable=True)

    role = relationship("Role", back_populates="users", lazy="joined")

    services = relationship(
        "Service",
        back_populates="provider",
        foreign_keys="Service.provider_id",
        passive_deletes="all",
    )

    @property
    def role_name(self) -> str:
        return self.role.name.upper() if self.role is not None else ""

    def has_role(self, *names: str) -> bool:
        return self.role_name in {n.upper() for n in names}
