# serviexpress/api/routes/servicio.py
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from serviexpress.api.templating import redirect, render
from serviexpress.core.errors import ConflictError, DomainError
from serviexpress.core.security import require_roles, require_user
from serviexpress.db.base import get_db
from serviexpress.db.models.service import ServiceStatus
from serviexpress.db.models.user import ROLE_ADMIN, ROLE_PROVIDER, User
from serviexpress.schemas.service import ServiceForm, ServiceResponse
from serviexpress.schemas.user import form_errors
from serviexpress.services import catalog, users as users_service
from serviexpress.services.catalog_client import CatalogUnavailableError, ServiceCatalogClient, get_catalog_client

router = APIRouter(prefix="/servicio", tags=["servicio"])

can_publish = require_roles(ROLE_ADMIN, ROLE_PROVIDER)


def _list_page(request, db, user, nombre=None, page=0, status_code=200, **extra):
    pagina = catalog.list_for_role(db, user, nombre, max(page, 0))
    return render(
        request,
        "servicios/lista.html",
        user,
        services=pagina.items,
        current_page=pagina.number,
        total_pages=pagina.total_pages,
        search=nombre or "",
        status_code=status_code,
        **extra,
    )


def _form_page(request, db, user, form, errors, editing=None, status_code=200):
    return render(
        request,
        "servicios/form.html",
        user,
        form=form,
        errors=errors,
        editing=editing,
        providers=users_service.list_providers(db),
        statuses=list(ServiceStatus),
        status_code=status_code,
    )


def _bind(raw: dict):
    """(form, errors): pydantic parsing first, then the catalogue rules."""
    try:
        form = ServiceForm(**raw)
    except ValidationError as exc:
        return None, form_errors(exc)
    return form, catalog.validate_service(form)


@router.get("", response_class=HTMLResponse)
def list_services(
    request: Request,
    nombre: Optional[str] = None,
    page: int = 0,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    return _list_page(request, db, user, nombre, page)


@router.get("/crearServicio", response_class=HTMLResponse)
def new_service_page(request: Request, db: Session = Depends(get_db), user: User = Depends(can_publish)):
    return _form_page(request, db, user, form={}, errors={})


@router.post("/guardar")
def save_service(
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    status_value: str = Form("", alias="status"),
    provider_id: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(can_publish),
):
    raw = {"name": name, "description": description, "price": price, "status": status_value, "provider_id": provider_id}
    form, errors = _bind(raw)
    if errors:
        return _form_page(request, db, user, raw, errors, status_code=status.HTTP_400_BAD_REQUEST)
    try:
        catalog.create_service(db, form, acting_user=user, provider_id=form.provider_id)
    except DomainError as exc:
        return _form_page(request, db, user, raw, {"__all__": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)
    return redirect("/servicio", success="Servicio guardado.")


@router.get("/editar/{service_id}", response_class=HTMLResponse)
def edit_service_page(service_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(can_publish)):
    service = catalog.get_service(db, service_id)
    form = {
        "name": service.name,
        "description": service.description,
        "price": service.price,
        "status": service.status.value,
        "provider_id": service.provider_id,
    }
    return _form_page(request, db, user, form, {}, editing=service)


@router.post("/editar/{service_id}")
def update_service(
    service_id: int,
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    status_value: str = Form("", alias="status"),
    provider_id: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(can_publish),
):
    service = catalog.get_service(db, service_id)
    raw = {"name": name, "description": description, "price": price, "status": status_value, "provider_id": provider_id}
    form, errors = _bind(raw)
    if errors:
        return _form_page(request, db, user, raw, errors, editing=service, status_code=status.HTTP_400_BAD_REQUEST)
    try:
        catalog.update_service(db, service_id, form, acting_user=user, provider_id=form.provider_id)
    except DomainError as exc:
        return _form_page(request, db, user, raw, {"__all__": str(exc)}, editing=service, status_code=status.HTTP_400_BAD_REQUEST)
    return redirect("/servicio", success="Servicio actualizado.")


@router.post("/eliminar/{service_id}")
def delete_service(
    service_id: int,
    request: Request,
    page: int = 0,
    db: Session = Depends(get_db),
    user: User = Depends(can_publish),
):
    try:
        catalog.delete_service(db, service_id, acting_user=user)
    except ConflictError as exc:
        # listing is shown again in place, with the reason
        return _list_page(request, db, user, page=page, status_code=status.HTTP_409_CONFLICT, error=str(exc))
    except DomainError as exc:
        return redirect("/servicio", error=str(exc))
    return redirect("/servicio", success="Servicio eliminado.")


@router.post("/auto/{tipo}", response_model=ServiceResponse)
def import_service(
    tipo: str,
    db: Session = Depends(get_db),
    client: ServiceCatalogClient = Depends(get_catalog_client),
    user: User = Depends(can_publish),
):
    try:
        return catalog.import_from_api(db, tipo, client)
    except CatalogUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
