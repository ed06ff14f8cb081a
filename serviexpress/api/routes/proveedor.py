# serviexpress/api/routes/proveedor.py
from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from serviexpress.api.templating import redirect, render
from serviexpress.core.errors import DomainError
from serviexpress.core.security import require_roles
from serviexpress.db.base import get_db
from serviexpress.db.models.user import ROLE_ADMIN, ROLE_PROVIDER, User
from serviexpress.schemas.service import ServiceForm
from serviexpress.schemas.user import form_errors
from serviexpress.services import catalog, users as users_service

router = APIRouter(prefix="/proveedor", tags=["proveedor"])

provider_or_admin = require_roles(ROLE_PROVIDER, ROLE_ADMIN)


def _provider_for(db: Session, provider_id: int, user: User) -> User:
    if user.id != provider_id and not user.has_role(ROLE_ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    provider = users_service.get_user(db, provider_id)
    if not provider.has_role(ROLE_PROVIDER):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proveedor no encontrado o inválido")
    return provider


@router.get("/servicios", response_class=HTMLResponse)
def my_services(request: Request, db: Session = Depends(get_db), user: User = Depends(provider_or_admin)):
    return render(
        request,
        "proveedores/servicios.html",
        user,
        provider=user,
        services=catalog.history_for_provider(db, user.id),
    )


@router.get("/{provider_id}/publicarServicio", response_class=HTMLResponse)
def publish_page(provider_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(provider_or_admin)):
    provider = _provider_for(db, provider_id, user)
    return render(request, "proveedores/publicar.html", user, provider=provider, form={}, errors={})


@router.post("/{provider_id}/publicarServicio")
def publish(
    provider_id: int,
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(provider_or_admin),
):
    provider = _provider_for(db, provider_id, user)
    raw = {"name": name, "description": description, "price": price}
    try:
        form = ServiceForm(**raw)
        errors = catalog.validate_service(form)
    except ValidationError as exc:
        errors = form_errors(exc)
    if errors:
        return render(
            request,
            "proveedores/publicar.html",
            user,
            provider=provider,
            form=raw,
            errors=errors,
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    catalog.create_service(db, form, provider_id=provider.id)
    return redirect("/proveedor/servicios", success="Servicio publicado correctamente.")


@router.post("/{provider_id}/aceptarSolicitud/{service_id}")
def accept_request(provider_id: int, service_id: int, db: Session = Depends(get_db), user: User = Depends(provider_or_admin)):
    provider = _provider_for(db, provider_id, user)
    back = f"/proveedor/{provider_id}/solicitudesPendientes"
    try:
        catalog.accept(db, service_id, provider)
    except DomainError as exc:
        return redirect(back, error=str(exc))
    return redirect(back, success="Solicitud aceptada.")


@router.post("/{provider_id}/actualizarDisponibilidad")
def update_availability(
    provider_id: int,
    disponibilidad: bool = Form(...),
    db: Session = Depends(get_db),
    user: User = Depends(provider_or_admin),
):
    _provider_for(db, provider_id, user)
    users_service.set_availability(db, provider_id, disponibilidad)
    return redirect("/proveedor/servicios", success="Disponibilidad actualizada.")


@router.get("/{provider_id}/solicitudesPendientes", response_class=HTMLResponse)
def pending_requests(provider_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(provider_or_admin)):
    provider = _provider_for(db, provider_id, user)
    return render(
        request,
        "proveedores/pendientes.html",
        user,
        provider=provider,
        services=catalog.pending_for_provider(db, provider_id),
    )


@router.get("/{provider_id}/historialServicios", response_class=HTMLResponse)
def service_history(provider_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(provider_or_admin)):
    provider = _provider_for(db, provider_id, user)
    return render(
        request,
        "proveedores/historial.html",
        user,
        provider=provider,
        services=catalog.history_for_provider(db, provider_id),
    )


@router.post("/{provider_id}/gestionarTarifas")
def manage_rates(
    provider_id: int,
    tarifa: float = Form(...),
    db: Session = Depends(get_db),
    user: User = Depends(provider_or_admin),
):
    _provider_for(db, provider_id, user)
    try:
        users_service.set_rate(db, provider_id, tarifa)
    except DomainError as exc:
        return redirect("/proveedor/servicios", error=str(exc))
    return redirect("/proveedor/servicios", success="Tarifa actualizada.")
