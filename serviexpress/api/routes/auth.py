# serviexpress/api/routes/auth.py
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from serviexpress.api.templating import redirect, render
from serviexpress.core.errors import DomainError
from serviexpress.core.security import get_current_user, home_url_for, login_session, logout_session
from serviexpress.db.base import get_db
from serviexpress.db.models.user import User
from serviexpress.schemas.user import RegistrationForm, form_errors
from serviexpress.services import auth as auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


# --- login ---

@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, user: Optional[User] = Depends(get_current_user)):
    if user:
        return RedirectResponse(url=home_url_for(user), status_code=status.HTTP_302_FOUND)
    return render(request, "auth/login.html")


@router.post("/login")
def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    user = auth_service.authenticate(db, email, password)
    if not user:
        return render(
            request,
            "auth/login.html",
            error="Correo o contraseña incorrectos.",
            email=email,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    next_url = login_session(request, user)
    # only local paths, never an absolute URL someone slipped into the session
    if not next_url or not next_url.startswith("/") or next_url.startswith("//"):
        next_url = home_url_for(user)
    return RedirectResponse(url=next_url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/logout")
@router.post("/logout")
def logout(request: Request):
    logout_session(request)
    return redirect("/auth/login", success="Sesión cerrada.")


# --- sign up ---

@router.get("/registro", response_class=HTMLResponse)
def registration_page(request: Request, user: Optional[User] = Depends(get_current_user)):
    if user:
        return RedirectResponse(url=home_url_for(user), status_code=status.HTTP_302_FOUND)
    return render(request, "auth/registro.html", form={}, errors={})


@router.post("/registro")
def register(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    phone: str = Form(""),
    city: str = Form(""),
    db: Session = Depends(get_db),
):
    raw = {
        "username": username,
        "email": email,
        "password": password,
        "confirm_password": confirm_password,
        "phone": phone,
        "city": city,
    }
    try:
        form = RegistrationForm(**raw)
        auth_service.register_client(db, form)
    except ValidationError as exc:
        return render(
            request,
            "auth/registro.html",
            form=raw,
            errors=form_errors(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    except DomainError as exc:
        return render(
            request,
            "auth/registro.html",
            form=raw,
            errors={"email": str(exc)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    return redirect("/auth/login", success="Registro exitoso, ya puedes iniciar sesión.")
