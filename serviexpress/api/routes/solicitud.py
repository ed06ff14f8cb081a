# serviexpress/api/routes/solicitud.py
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from serviexpress.api.templating import redirect, render
from serviexpress.core.errors import DomainError
from serviexpress.core.security import require_roles, require_user
from serviexpress.db.base import get_db
from serviexpress.db.models.service_request import RequestStatus
from serviexpress.db.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_PROVIDER, User
from serviexpress.repositories import services as services_repo
from serviexpress.services import requests as requests_service

router = APIRouter(prefix="/solicitud", tags=["solicitud"])

HISTORY = "/solicitud/historial"
PROVIDER_LIST = "/solicitud/proveedor/listar"

client_only = require_roles(ROLE_CLIENT)
admin_only = require_roles(ROLE_ADMIN)
provider_or_admin = require_roles(ROLE_PROVIDER, ROLE_ADMIN)


def _history_page(request, db, user):
    # admins and providers get the provider-side table
    template = "solicitudes/historial.html"
    if user.has_role(ROLE_ADMIN, ROLE_PROVIDER):
        template = "solicitudes/proveedor.html"
    return render(
        request,
        template,
        user,
        requests=requests_service.history_for(db, user),
        states=[s.value for s in RequestStatus],
    )


# ================== create ==================

@router.get("/crear/{service_id}", response_class=HTMLResponse)
def new_request_page(service_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(client_only)):
    service = services_repo.get(db, service_id)
    if service is None:
        return RedirectResponse(url="/servicio", status_code=303)
    return render(request, "solicitudes/crear.html", user, service=service)


@router.post("/guardar")
def save_request(
    service_id: int = Form(...),
    details: str = Form(""),
    delivery_address: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(client_only),
):
    try:
        requests_service.create_request(db, user, service_id, details, delivery_address)
    except DomainError as exc:
        return redirect("/servicio", error=str(exc))
    return redirect("/servicio", success="Solicitud realizada con éxito")


# ================== listings ==================

@router.get("/historial", response_class=HTMLResponse)
def history(request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    return _history_page(request, db, user)


@router.get("/proveedor/listar", response_class=HTMLResponse)
def provider_list(request: Request, db: Session = Depends(get_db), user: User = Depends(provider_or_admin)):
    return _history_page(request, db, user)


@router.get("/detalle/{request_id}", response_class=HTMLResponse)
def detail(request_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    try:
        solicitud = requests_service.get_visible(db, user, request_id)
    except DomainError as exc:
        return redirect(HISTORY, error=str(exc))
    return render(
        request,
        "solicitudes/detalle.html",
        user,
        solicitud=solicitud,
        states=[s.value for s in RequestStatus],
    )


# ================== payment / cancel (client) ==================

@router.get("/pagar/redir/{request_id}")
def pay(request_id: int, db: Session = Depends(get_db), user: User = Depends(client_only)):
    try:
        requests_service.mark_payment_in_progress(db, user, request_id)
    except DomainError:
        return redirect(HISTORY, error="No se pudo procesar el pago")
    return RedirectResponse(url=f"/checkout/wompi/{request_id}", status_code=303)


@router.get("/pagar/{request_id}")
def pay_shortcut(request_id: int):
    return RedirectResponse(url=f"/solicitud/pagar/redir/{request_id}", status_code=303)


@router.post("/cancelar/{request_id}")
def cancel(request_id: int, db: Session = Depends(get_db), user: User = Depends(client_only)):
    try:
        requests_service.cancel(db, user, request_id)
    except DomainError as exc:
        return redirect(HISTORY, error=str(exc))
    return redirect(HISTORY, success="Solicitud cancelada con éxito")


# ================== status changes ==================

@router.post("/proveedor/estado/{request_id}")
def provider_status(
    request_id: int,
    estado: str = Form(...),
    fecha_estimada: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    try:
        estimated = requests_service.parse_estimated_date(fecha_estimada)
        requests_service.provider_set_status(db, user, request_id, estado, estimated)
    except DomainError as exc:
        return redirect(PROVIDER_LIST, error=str(exc))
    return redirect(PROVIDER_LIST, success="Actualizado")


@router.post("/admin/estado/{request_id}")
def admin_status(
    request_id: int,
    estado: str = Form(...),
    db: Session = Depends(get_db),
    user: User = Depends(admin_only),
):
    try:
        requests_service.admin_set_status(db, request_id, estado)
    except DomainError as exc:
        return redirect(HISTORY, error=str(exc))
    return redirect(HISTORY, success="Estado actualizado correctamente")


@router.post("/cliente/estado/{request_id}")
def client_status(
    request_id: int,
    estado: str = Form(...),
    fecha_estimada: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(client_only),
):
    try:
        requests_service.client_set_status(db, user, request_id, estado, fecha_estimada)
    except DomainError as exc:
        return redirect(HISTORY, error=str(exc))
    return redirect(HISTORY, success="Cambios guardados")
