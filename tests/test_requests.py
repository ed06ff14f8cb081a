from datetime import date

import pytest

from serviexpress.core.errors import DomainError, PermissionDeniedError
from serviexpress.db.models.payment import Payment, PaymentStatus
from serviexpress.db.models.service import ServiceStatus
from serviexpress.db.models.service_request import RequestStatus, ServiceRequest
from serviexpress.services import payments as payments_service
from serviexpress.services import requests as requests_service


@pytest.fixture()
def service(provider, make_service):
    return make_service(provider=provider)


@pytest.fixture()
def solicitud(db, customer, service):
    return requests_service.create_request(db, customer, service.id, "  Revisar lavamanos ", "")


def test_create_request_defaults(solicitud, customer):
    assert solicitud.status == RequestStatus.PENDIENTE.value
    assert solicitud.request_date == date.today()
    assert solicitud.details == "Revisar lavamanos"
    assert solicitud.delivery_address is None
    assert solicitud.client_id == customer.id


def test_cannot_request_unavailable_service(db, customer, provider, make_service):
    busy = make_service(provider=provider, status=ServiceStatus.OCUPADO)
    with pytest.raises(DomainError):
        requests_service.create_request(db, customer, busy.id, None, None)
    with pytest.raises(DomainError):
        requests_service.create_request(db, customer, 999, None, None)


@pytest.mark.parametrize("raw, expected", [("en proceso", "EN_PROCESO"), (" finalizado ", "FINALIZADO"), ("PAGO_ACEPTADO", "PAGO_ACEPTADO")])
def test_normalize_status(raw, expected):
    assert requests_service.normalize_status(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "TERMINADO"])
def test_normalize_status_rejects_unknown(raw):
    with pytest.raises(DomainError):
        requests_service.normalize_status(raw)


def test_parse_estimated_date():
    assert requests_service.parse_estimated_date("2024-06-30") == date(2024, 6, 30)
    assert requests_service.parse_estimated_date("  ") is None
    with pytest.raises(DomainError):
        requests_service.parse_estimated_date("30/06/2024")


def test_history_is_scoped_by_role(db, admin, provider, customer, make_user, make_service, solicitud):
    other_provider = make_user("PROVEEDOR")
    other_service = make_service(provider=other_provider, name="Pintura")
    other = requests_service.create_request(db, make_user(), other_service.id, None, None)

    assert [r.id for r in requests_service.history_for(db, customer)] == [solicitud.id]
    assert [r.id for r in requests_service.history_for(db, provider)] == [solicitud.id]
    assert {r.id for r in requests_service.history_for(db, admin)} == {solicitud.id, other.id}


def test_get_visible(db, admin, provider, customer, make_user, solicitud):
    assert requests_service.get_visible(db, customer, solicitud.id) is solicitud
    assert requests_service.get_visible(db, provider, solicitud.id) is solicitud
    assert requests_service.get_visible(db, admin, solicitud.id) is solicitud
    with pytest.raises(PermissionDeniedError):
        requests_service.get_visible(db, make_user(), solicitud.id)


def test_cancel_frees_service_and_drops_pending_payment(db, settings, customer, service, solicitud):
    payments_service.checkout_for_request(db, settings, customer, solicitud.id)
    service.client = customer
    db.commit()

    requests_service.cancel(db, customer, solicitud.id)

    db.expire_all()
    assert db.query(ServiceRequest).count() == 0
    assert db.query(Payment).count() == 0
    assert service.status == ServiceStatus.DISPONIBLE
    assert service.client_id is None


def test_cancel_refused_after_payment_approved(db, settings, customer, solicitud):
    session = payments_service.checkout_for_request(db, settings, customer, solicitud.id)
    payments_service.update_status_by_reference(db, session.reference, PaymentStatus.APROBADO, "{}")

    with pytest.raises(DomainError):
        requests_service.cancel(db, customer, solicitud.id)
    assert db.query(ServiceRequest).count() == 1


def test_cancel_only_by_owner(db, make_user, solicitud):
    with pytest.raises(PermissionDeniedError):
        requests_service.cancel(db, make_user(), solicitud.id)


def test_provider_status_requires_ownership(db, provider, make_user, solicitud):
    updated = requests_service.provider_set_status(db, provider, solicitud.id, "en proceso", date(2024, 7, 1))
    assert updated.status == "EN_PROCESO"
    assert updated.estimated_date == date(2024, 7, 1)

    with pytest.raises(PermissionDeniedError):
        requests_service.provider_set_status(db, make_user("PROVEEDOR"), solicitud.id, "FINALIZADO")


def test_admin_status_only_from_payment_in_progress(db, customer, solicitud):
    with pytest.raises(DomainError):
        requests_service.admin_set_status(db, solicitud.id, "PAGO_ACEPTADO")

    requests_service.mark_payment_in_progress(db, customer, solicitud.id)
    updated = requests_service.admin_set_status(db, solicitud.id, "PAGO_ACEPTADO")
    assert updated.status == "PAGO_ACEPTADO"


def test_client_status_after_payment(db, customer, solicitud):
    with pytest.raises(DomainError):
        requests_service.client_set_status(db, customer, solicitud.id, "FINALIZADO")

    solicitud.status = RequestStatus.PAGO_ACEPTADO.value
    solicitud.estimated_date = date(2024, 1, 1)
    db.commit()

    updated = requests_service.client_set_status(db, customer, solicitud.id, "EN_PROCESO", "")
    assert updated.status == "EN_PROCESO"
    assert updated.estimated_date is None

    updated = requests_service.client_set_status(db, customer, solicitud.id, "FINALIZADO", "2024-08-15")
    assert updated.status == "FINALIZADO"
    assert updated.estimated_date == date(2024, 8, 15)


def test_mark_payment_in_progress_refused_when_paid(db, settings, customer, solicitud):
    session = payments_service.checkout_for_request(db, settings, customer, solicitud.id)
    payments_service.update_status_by_reference(db, session.reference, PaymentStatus.APROBADO, "{}")
    with pytest.raises(DomainError):
        requests_service.mark_payment_in_progress(db, customer, solicitud.id)


# ---------- pages ----------

def test_client_request_flow_through_pages(client, db, login, customer, service):
    login(customer)

    page = client.get(f"/solicitud/crear/{service.id}")
    assert page.status_code == 200
    assert service.name in page.text

    res = client.post(
        "/solicitud/guardar",
        data={"service_id": service.id, "details": "Urgente", "delivery_address": "Cra 7"},
        follow_redirects=False,
    )
    assert res.status_code == 303
    assert res.headers["location"].startswith("/servicio?success=")
    solicitud = db.query(ServiceRequest).one()

    history = client.get("/solicitud/historial")
    assert history.status_code == 200
    assert service.name in history.text

    res = client.get(f"/solicitud/pagar/{solicitud.id}", follow_redirects=False)
    assert res.headers["location"] == f"/solicitud/pagar/redir/{solicitud.id}"
    res = client.get(res.headers["location"], follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == f"/checkout/wompi/{solicitud.id}"

    db.expire_all()
    assert solicitud.status == RequestStatus.PAGO_EN_PROCESO.value

    checkout = client.get(f"/checkout/wompi/{solicitud.id}")
    assert checkout.status_code == 200
    assert "pub_test_abc" in checkout.text
    assert "test_integrity_secret" not in checkout.text
    assert "test_events_secret" not in checkout.text
    assert f"SOL-{solicitud.id}-" in checkout.text

    detail = client.get(f"/solicitud/detalle/{solicitud.id}")
    assert detail.status_code == 200
    assert "Cra 7" in detail.text

    res = client.post(f"/solicitud/cancelar/{solicitud.id}", follow_redirects=False)
    assert res.status_code == 303
    assert "success=" in res.headers["location"]
    db.expire_all()
    assert db.query(ServiceRequest).count() == 0


def test_provider_updates_status_through_page(client, db, login, provider, solicitud):
    login(provider)

    listing = client.get("/solicitud/proveedor/listar")
    assert listing.status_code == 200

    res = client.post(
        f"/solicitud/proveedor/estado/{solicitud.id}",
        data={"estado": "EN_PROCESO", "fecha_estimada": "2024-09-01"},
        follow_redirects=False,
    )
    assert res.status_code == 303
    assert res.headers["location"].startswith("/solicitud/proveedor/listar?success=")
    db.expire_all()
    assert solicitud.status == "EN_PROCESO"
    assert solicitud.estimated_date == date(2024, 9, 1)


def test_bad_estimated_date_is_reported(client, login, provider, solicitud):
    login(provider)
    res = client.post(
        f"/solicitud/proveedor/estado/{solicitud.id}",
        data={"estado": "EN_PROCESO", "fecha_estimada": "mañana"},
        follow_redirects=False,
    )
    assert "error=" in res.headers["location"]


def test_request_pages_need_client_role(client, login, provider, service):
    login(provider)
    assert client.get(f"/solicitud/crear/{service.id}").status_code == 403


def test_anonymous_visitor_is_sent_to_login(client, service):
    res = client.get(f"/solicitud/crear/{service.id}", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/auth/login"


def test_payment_callback_page(client, login, customer):
    login(customer)
    res = client.get("/pagos/wompi/callback", params={"id": "1234-5678"})
    assert res.status_code == 200
    assert "1234-5678" in res.text
