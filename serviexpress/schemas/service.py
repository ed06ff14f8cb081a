# serviexpress/schemas/service.py
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from serviexpress.db.models.service import ServiceStatus


# Shared fields
class ServiceBase(BaseModel):
    name: str = Field(..., max_length=200)
    description: str = Field(..., max_length=200)
    price: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=2)
    status: Optional[ServiceStatus] = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("price", "status", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


# HTML form (admin, provider); rules are checked in the service layer so
# every error can be shown next to its field
class ServiceForm(ServiceBase):
    provider_id: Optional[int] = None

    @field_validator("provider_id", mode="before")
    @classmethod
    def empty_provider(cls, v):
        return None if v in ("", None) else v


# REST create / update
class ServiceCreate(ServiceBase):
    provider_id: Optional[int] = None
    client_id: Optional[int] = None


class PersonMini(BaseModel):
    id: int
    username: str
    email: str

    class Config:
        from_attributes = True


# What API returns
class ServiceResponse(BaseModel):
    id: int
    name: str
    description: str
    price: Decimal
    status: ServiceStatus

    provider: Optional[PersonMini] = None
    client: Optional[PersonMini] = None

    class Config:
        from_attributes = True
