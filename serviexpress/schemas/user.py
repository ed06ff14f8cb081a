# serviexpress/schemas/user.py
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator, model_validator


def form_errors(exc: ValidationError) -> dict:
    """Flatten a pydantic error into {field: message} for the templates."""
    errors = {}
    for err in exc.errors():
        field = str(err["loc"][-1]) if err["loc"] else "__all__"
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, message)
    return errors


class RegistrationForm(BaseModel):
    username: str = Field(..., min_length=1, max_length=80)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=120)
    confirm_password: str = Field(..., min_length=6, max_length=120)
    phone: str = Field(..., min_length=1, max_length=30)
    city: str = Field(..., min_length=1, max_length=80)

    @field_validator("username", "phone", "city")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Este campo es obligatorio.")
        return v

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Las contraseñas no coinciden.")
        return self


class UserForm(BaseModel):
    """Admin create/edit form. A blank password on edit keeps the current one."""

    username: str = Field(..., min_length=1, max_length=80)
    email: EmailStr
    password: Optional[str] = Field(default=None, max_length=120)
    role_id: Optional[int] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    city: Optional[str] = Field(default=None, max_length=80)

    @field_validator("password", "phone", "city", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("role_id", mode="before")
    @classmethod
    def empty_role(cls, v):
        return None if v in ("", None) else v


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    username: str
    role_name: str

    class Config:
        from_attributes = True
