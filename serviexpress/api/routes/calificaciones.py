# serviexpress/api/routes/calificaciones.py
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from serviexpress.api.templating import redirect, render
from serviexpress.core.errors import DomainError
from serviexpress.core.security import require_roles, require_user
from serviexpress.db.base import get_db
from serviexpress.db.models.user import ROLE_CLIENT, User
from serviexpress.repositories import services as services_repo
from serviexpress.schemas.rating import RatingForm
from serviexpress.schemas.user import form_errors
from serviexpress.services import ratings as ratings_service, users as users_service

router = APIRouter(prefix="/calificaciones", tags=["calificaciones"])

client_only = require_roles(ROLE_CLIENT)


def _form_page(request, db, user, form, errors=None, service_name=None, provider_name=None, status_code=200):
    context = {
        "form": form,
        "errors": errors or {},
        "service_name": service_name,
        "provider_name": provider_name,
    }
    # without a preselected target the client picks one
    if not form.get("service_id") and not form.get("provider_id"):
        context["services"] = services_repo.list_all(db)
        context["providers"] = users_service.list_providers(db)
    return render(request, "calificaciones/form.html", user, status_code=status_code, **context)


@router.get("", response_class=HTMLResponse)
def list_ratings(
    request: Request,
    rating: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    return render(
        request,
        "calificaciones/lista.html",
        user,
        ratings=ratings_service.list_ratings(db, rating),
        rating=rating,
    )


@router.get("/nueva", response_class=HTMLResponse)
def new_rating(
    request: Request,
    servicio: Optional[int] = None,
    proveedor: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(client_only),
):
    return _form_page(request, db, user, {"service_id": servicio, "provider_id": proveedor})


@router.get("/nueva/solicitud/{request_id}", response_class=HTMLResponse)
def new_rating_for_request(request_id: int, request: Request, db: Session = Depends(get_db), user: User = Depends(client_only)):
    try:
        form, service_name, provider_name = ratings_service.form_from_request(db, user.id, request_id)
    except DomainError as exc:
        return redirect("/solicitud/historial", error=str(exc))
    return _form_page(
        request,
        db,
        user,
        {"service_id": form.service_id, "provider_id": form.provider_id},
        service_name=service_name,
        provider_name=provider_name,
    )


@router.post("")
def create_rating(
    request: Request,
    service_id: str = Form(""),
    provider_id: str = Form(""),
    score: str = Form(""),
    comment: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(client_only),
):
    raw = {"service_id": service_id, "provider_id": provider_id, "score": score, "comment": comment}
    try:
        form = RatingForm(**raw)
        ratings_service.create_or_update(db, user.id, form)
    except ValidationError as exc:
        return _form_page(request, db, user, raw, form_errors(exc), status_code=status.HTTP_400_BAD_REQUEST)
    except DomainError as exc:
        return _form_page(request, db, user, raw, {"__all__": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)
    return redirect("/calificaciones", success="¡Gracias por tu calificación!")
