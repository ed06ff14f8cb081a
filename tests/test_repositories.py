from serviexpress.db.models.payment import Payment, PaymentMethod, PaymentStatus
from serviexpress.db.models.service import ServiceStatus
from serviexpress.repositories import payments as payments_repo
from serviexpress.repositories import ratings as ratings_repo
from serviexpress.repositories import roles as roles_repo
from serviexpress.repositories import service_requests as requests_repo
from serviexpress.repositories import services as services_repo
from serviexpress.repositories import users as users_repo
from serviexpress.schemas.rating import RatingForm
from serviexpress.services import ratings as ratings_service
from serviexpress.services import requests as requests_service


def test_paginate(db, provider, make_service):
    for n in range(5):
        make_service(provider=provider, name=f"Servicio {n}")

    page = services_repo.page_by_status(db, ServiceStatus.DISPONIBLE, 1, 2)
    assert page.number == 1
    assert page.total == 5
    assert page.total_pages == 3
    assert [s.name for s in page.items] == ["Servicio 2", "Servicio 1"]


def test_users_by_role_and_email(db, customer, provider):
    assert users_repo.list_by_role_name(db, "proveedor") == [provider]
    assert users_repo.find_by_email_ignore_case(db, customer.email.upper()) is customer
    assert users_repo.find_by_email_ignore_case(db, "") is None
    assert roles_repo.find_by_name_ignore_case(db, "admin").name == "ADMIN"


def test_payment_lookups(db, customer, provider, make_service):
    service = make_service(provider=provider)
    solicitud = requests_service.create_request(db, customer, service.id, None, None)
    payment = Payment(
        request=solicitud,
        amount=60000,
        method=PaymentMethod.PSE,
        status=PaymentStatus.PENDIENTE,
        external_reference="SOL-1-1",
        payment_token="tok-123",
        client_email=customer.email,
    )
    db.add(payment)
    db.commit()

    assert payments_repo.find_by_token(db, "tok-123") is payment
    assert payments_repo.find_by_token(db, "otro") is None
    assert payments_repo.find_by_external_reference(db, "SOL-1-1") is payment
    assert payments_repo.find_by_request(db, solicitud.id) is payment
    assert payments_repo.list_by_client_email(db, customer.email) == [payment]
    assert payments_repo.list_by_status(db, PaymentStatus.APROBADO) == []


def test_counts_and_status_lookups(db, customer, provider, make_user, make_service):
    first = make_service(provider=provider, name="Uno")
    make_service(provider=provider, name="Dos")
    make_service(provider=make_user("PROVEEDOR"), name="Tres")
    solicitud = requests_service.create_request(db, customer, first.id, None, None)

    assert services_repo.count_by_provider(db, provider.id) == 2
    assert requests_repo.count_by_provider(db, provider.id) == 1
    assert requests_repo.list_by_status(db, "PENDIENTE") == [solicitud]
    assert requests_repo.list_by_status(db, "FINALIZADO") == []

    ratings_service.create_or_update(db, customer.id, RatingForm(service_id=first.id, score=5))
    assert [r.service_id for r in ratings_repo.list_by_client(db, customer.id)] == [first.id]
