# serviexpress/api/routes/checkout.py
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from serviexpress.api.templating import redirect, render
from serviexpress.core.errors import DomainError
from serviexpress.core.security import get_current_user, require_user
from serviexpress.db.base import get_db
from serviexpress.db.models.user import User
from serviexpress.payments.settings import WompiSettings, get_wompi_settings
from serviexpress.repositories import service_requests as requests_repo
from serviexpress.services import payments as payments_service

router = APIRouter(tags=["checkout"])


# Invoice + Wompi button for one request
@router.get("/checkout/wompi/{request_id}", response_class=HTMLResponse)
def wompi_checkout(
    request_id: int,
    request: Request,
    db: Session = Depends(get_db),
    settings: WompiSettings = Depends(get_wompi_settings),
    user: User = Depends(require_user),
):
    try:
        session = payments_service.checkout_for_request(db, settings, user, request_id)
    except DomainError as exc:
        return redirect("/solicitud/historial", error=str(exc))

    return render(
        request,
        "pagos/checkout_wompi.html",
        user,
        solicitud=requests_repo.get(db, request_id),
        checkout=session,
    )


# Wompi sends the payer back here with ?id=<transaction id>
@router.get("/pagos/wompi/callback", response_class=HTMLResponse)
def wompi_result(
    request: Request,
    id: Optional[str] = None,
    user: Optional[User] = Depends(get_current_user),
):
    return render(request, "pagos/wompi_result.html", user, transaction_id=id)
