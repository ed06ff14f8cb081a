# serviexpress/api/routes/cliente.py
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from serviexpress.api.templating import redirect, render
from serviexpress.core.errors import DomainError
from serviexpress.core.security import require_user
from serviexpress.db.base import get_db
from serviexpress.db.models.user import ROLE_ADMIN, User
from serviexpress.services import catalog, users as users_service

router = APIRouter(prefix="/cliente", tags=["cliente"])


def _client_for(db: Session, client_id: int, user: User) -> User:
    """The client in the URL must be the one logged in, unless an admin is acting."""
    if user.id != client_id and not user.has_role(ROLE_ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return users_service.get_user(db, client_id)


@router.get("/{client_id}/solicitarServicio", response_class=HTMLResponse)
def available_services(client_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    client = _client_for(db, client_id, user)
    return render(
        request,
        "clientes/solicitar.html",
        user,
        client=client,
        services=catalog.list_requestable(db),
    )


@router.post("/{client_id}/solicitarServicio/{service_id}")
def request_service(client_id: int, service_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    client = _client_for(db, client_id, user)
    back = f"/cliente/{client_id}/historialServicios"
    try:
        catalog.assign_client(db, service_id, client)
    except DomainError as exc:
        return redirect(back, error=str(exc))
    return redirect(back, success="Servicio solicitado correctamente.")


@router.post("/{client_id}/cancelarServicio/{service_id}")
def cancel_service(client_id: int, service_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    _client_for(db, client_id, user)
    back = f"/cliente/{client_id}/historialServicios"
    service = catalog.get_service(db, service_id)
    if service.client_id != client_id:
        return redirect(back, error="Ese servicio no está asignado a este cliente.")
    catalog.release_client(db, service_id)
    return redirect(back, success="Servicio cancelado correctamente.")


@router.get("/{client_id}/historialServicios", response_class=HTMLResponse)
def service_history(client_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    client = _client_for(db, client_id, user)
    return render(
        request,
        "clientes/historial.html",
        user,
        client=client,
        services=catalog.history_for_client(db, client_id),
    )
