# serviexpress/api/routes/pagos_api.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from serviexpress.core.errors import ConflictError, DomainError, NotFoundError, SignatureError
from serviexpress.db.base import get_db
from serviexpress.payments.settings import WompiSettings, get_wompi_settings
from serviexpress.schemas.payment import CheckoutInit, CheckoutResponse, PaymentResponse
from serviexpress.services import payments as payments_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pagos", tags=["api-pagos"])


@router.post("/checkout", response_model=CheckoutResponse)
def start_checkout(
    payload: CheckoutInit,
    db: Session = Depends(get_db),
    settings: WompiSettings = Depends(get_wompi_settings),
):
    try:
        url = payments_service.init_checkout(db, settings, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except DomainError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"checkoutUrl": url}


# Gateway events. The raw body is needed as-is for the checksum and the audit payload.
@router.post("/webhook")
async def webhook(
    request: Request,
    x_event_checksum: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: WompiSettings = Depends(get_wompi_settings),
):
    body = await request.body()
    try:
        await run_in_threadpool(payments_service.process_webhook, db, settings, body, x_event_checksum)
    except SignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    except NotFoundError as exc:
        logger.warning("Webhook for unknown payment: %s", exc)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except DomainError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"ok": True}


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: int, db: Session = Depends(get_db)):
    try:
        return payments_service.get_payment(db, payment_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("", response_model=List[PaymentResponse])
def list_payments(db: Session = Depends(get_db)):
    return payments_service.list_payments(db)
