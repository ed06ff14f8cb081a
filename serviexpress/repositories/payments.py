# serviexpress/repositories/payments.py
from typing import List, Optional

from sqlalchemy.orm import Session

from serviexpress.db.models.payment import Payment, PaymentStatus


def get(db: Session, payment_id: int) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.id == payment_id).first()


def list_all(db: Session) -> List[Payment]:
    return db.query(Payment).order_by(Payment.id).all()


def find_by_token(db: Session, token: str) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.payment_token == token).first()


def find_by_external_reference(db: Session, reference: str) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.external_reference == reference).first()


def find_by_request(db: Session, request_id: int) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.request_id == request_id).first()


def list_by_client_email(db: Session, email: str) -> List[Payment]:
    return db.query(Payment).filter(Payment.client_email == email).order_by(Payment.id).all()


def list_by_status(db: Session, status: PaymentStatus) -> List[Payment]:
    return db.query(Payment).filter(Payment.status == status).order_by(Payment.id).all()
