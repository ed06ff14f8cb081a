# serviexpress/api/routes/admin.py
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from serviexpress.api.templating import redirect, render
from serviexpress.core.errors import DomainError
from serviexpress.core.security import require_roles
from serviexpress.db.base import get_db
from serviexpress.db.models.service import ServiceStatus
from serviexpress.db.models.service_request import RequestStatus
from serviexpress.db.models.user import ROLE_ADMIN, User
from serviexpress.repositories import roles as roles_repo
from serviexpress.schemas.service import ServiceForm
from serviexpress.schemas.user import UserForm, form_errors
from serviexpress.services import catalog, requests as requests_service, users as users_service

router = APIRouter(prefix="/Admins", tags=["admin"])

admin_only = require_roles(ROLE_ADMIN)


def _user_form_page(request, db, user, form, errors, editing=None, status_code=200):
    return render(
        request,
        "admin/usuario_form.html",
        user,
        form=form,
        errors=errors,
        roles=roles_repo.list_all(db),
        editing=editing,
        status_code=status_code,
    )


# -------------------------
# 1. Users
# -------------------------
@router.get("/usuarios", response_class=HTMLResponse)
def list_users(request: Request, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return render(request, "admin/usuarios.html", user, users=users_service.list_users(db))


@router.get("/usuarios/crear", response_class=HTMLResponse)
def new_user_page(request: Request, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return _user_form_page(request, db, user, form={}, errors={})


@router.post("/usuarios/crear")
def create_user(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    role_id: str = Form(""),
    phone: str = Form(""),
    city: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(admin_only),
):
    raw = {"username": username, "email": email, "password": password, "role_id": role_id, "phone": phone, "city": city}
    try:
        users_service.create_user(db, UserForm(**raw))
    except ValidationError as exc:
        return _user_form_page(request, db, user, raw, form_errors(exc), status_code=status.HTTP_400_BAD_REQUEST)
    except DomainError as exc:
        return _user_form_page(request, db, user, raw, {"__all__": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)
    return redirect("/Admins/usuarios", success="Usuario creado.")


@router.get("/usuarios/{user_id}/editar", response_class=HTMLResponse)
def edit_user_page(user_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    target = users_service.get_user(db, user_id)
    form = {
        "username": target.username,
        "email": target.email,
        "role_id": target.role_id,
        "phone": target.phone,
        "city": target.city,
    }
    return _user_form_page(request, db, user, form, {}, editing=target)


@router.post("/usuarios/{user_id}/editar")
def update_user(
    user_id: int,
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    role_id: str = Form(""),
    phone: str = Form(""),
    city: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(admin_only),
):
    target = users_service.get_user(db, user_id)
    raw = {"username": username, "email": email, "password": password, "role_id": role_id, "phone": phone, "city": city}
    try:
        users_service.update_user(db, user_id, UserForm(**raw))
    except ValidationError as exc:
        return _user_form_page(request, db, user, raw, form_errors(exc), editing=target, status_code=status.HTTP_400_BAD_REQUEST)
    except DomainError as exc:
        return _user_form_page(request, db, user, raw, {"__all__": str(exc)}, editing=target, status_code=status.HTTP_400_BAD_REQUEST)
    return redirect("/Admins/usuarios", success="Usuario actualizado.")


@router.post("/usuarios/{user_id}/eliminar")
def delete_user(user_id: int, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    try:
        users_service.delete_user(db, user_id, user)
    except DomainError as exc:
        return redirect("/Admins/usuarios", error=str(exc))
    return redirect("/Admins/usuarios", success="Usuario eliminado.")


# -------------------------
# 2. Services
# -------------------------
def _service_form_page(request, db, user, form, errors, editing=None, status_code=200):
    return render(
        request,
        "admin/servicio_form.html",
        user,
        form=form,
        errors=errors,
        editing=editing,
        providers=users_service.list_providers(db),
        statuses=list(ServiceStatus),
        status_code=status_code,
    )


@router.get("/servicios", response_class=HTMLResponse)
def list_services(
    request: Request,
    page: int = 0,
    nombre: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(admin_only),
):
    pagina = catalog.list_for_role(db, user, nombre, max(page, 0))
    return render(
        request,
        "admin/servicios.html",
        user,
        services=pagina.items,
        current_page=pagina.number,
        total_pages=pagina.total_pages,
        search=nombre or "",
    )


@router.get("/servicios/historial", response_class=HTMLResponse)
def requests_history(request: Request, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return render(
        request,
        "solicitudes/proveedor.html",
        user,
        requests=requests_service.history_for(db, user),
        states=[s.value for s in RequestStatus],
    )


@router.get("/servicios/crear", response_class=HTMLResponse)
def new_service_page(request: Request, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return _service_form_page(request, db, user, form={}, errors={})


@router.post("/servicios/crear")
def create_service(
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    provider_name: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(admin_only),
):
    raw = {"name": name, "description": description, "price": price, "provider_name": provider_name}
    try:
        form = ServiceForm(name=name, description=description, price=price)
    except ValidationError as exc:
        return _service_form_page(request, db, user, raw, form_errors(exc), status_code=status.HTTP_400_BAD_REQUEST)

    errors = catalog.validate_service(form)
    if errors:
        return _service_form_page(request, db, user, raw, errors, status_code=status.HTTP_400_BAD_REQUEST)
    try:
        catalog.create_service_for_provider_name(db, form, provider_name)
    except DomainError as exc:
        return _service_form_page(request, db, user, raw, {"provider_name": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)
    return redirect("/Admins/servicios", success="Servicio creado.")


@router.get("/servicios/{service_id}/editar", response_class=HTMLResponse)
def edit_service_page(service_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    service = catalog.get_service(db, service_id)
    form = {
        "name": service.name,
        "description": service.description,
        "price": service.price,
        "status": service.status.value,
        "provider_id": service.provider_id,
    }
    return _service_form_page(request, db, user, form, {}, editing=service)


@router.post("/servicios/{service_id}/editar")
def update_service(
    service_id: int,
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    status_value: str = Form("", alias="status"),
    provider_id: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(admin_only),
):
    service = catalog.get_service(db, service_id)
    raw = {"name": name, "description": description, "price": price, "status": status_value, "provider_id": provider_id}
    try:
        form = ServiceForm(**raw)
    except ValidationError as exc:
        return _service_form_page(request, db, user, raw, form_errors(exc), editing=service, status_code=status.HTTP_400_BAD_REQUEST)

    errors = catalog.validate_service(form)
    if errors:
        return _service_form_page(request, db, user, raw, errors, editing=service, status_code=status.HTTP_400_BAD_REQUEST)
    try:
        catalog.update_service(db, service_id, form, acting_user=user, provider_id=form.provider_id)
    except DomainError as exc:
        return _service_form_page(request, db, user, raw, {"__all__": str(exc)}, editing=service, status_code=status.HTTP_400_BAD_REQUEST)
    return redirect("/Admins/servicios", success="Servicio actualizado.")


@router.post("/servicios/{service_id}/eliminar")
def delete_service(service_id: int, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    try:
        catalog.delete_service(db, service_id, acting_user=user)
    except DomainError as exc:
        return redirect("/Admins/servicios", error=str(exc))
    return redirect("/Admins/servicios", success="Servicio eliminado.")
