from decimal import Decimal

import pytest
import requests
from sqlalchemy.exc import IntegrityError

from serviexpress.core.errors import ConflictError, DomainError, PermissionDeniedError
from serviexpress.db.models.service import Service, ServiceStatus
from serviexpress.main import app
from serviexpress.schemas.service import ServiceForm
from serviexpress.services import catalog
from serviexpress.services import requests as requests_service
from serviexpress.services.catalog_client import CatalogUnavailableError, ServiceCatalogClient, get_catalog_client


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _client(payload, status_code=200):
    return ServiceCatalogClient("http://catalogo.local/servicios/", 2, FakeSession(FakeResponse(payload, status_code)))


# ---------- catalogue rules ----------

def test_validate_service_reports_each_field():
    errors = catalog.validate_service(ServiceForm(name=" ", description="", price="-5"))
    assert set(errors) == {"name", "description", "price"}
    assert errors["price"] == "El precio no puede ser negativo."
    assert catalog.validate_service(ServiceForm(name="a", description="b", price=""))["price"] == "El precio no puede estar vacío."


def test_provider_publishes_under_own_account(db, provider, make_user):
    other = make_user("PROVEEDOR")
    service = catalog.create_service(
        db, ServiceForm(name="Jardinería", description="Poda", price="30000"), acting_user=provider, provider_id=other.id
    )
    assert service.provider_id == provider.id
    assert service.status == ServiceStatus.DISPONIBLE


def test_create_service_checks_linked_users(db, customer):
    form = ServiceForm(name="Aseo", description="Limpieza", price="20000")
    with pytest.raises(DomainError):
        catalog.create_service(db, form, provider_id=customer.id)
    with pytest.raises(DomainError):
        catalog.create_service(db, form, client_id=999)


def test_create_for_provider_name_is_case_insensitive(db, provider):
    form = ServiceForm(name="Electricista", description="Instalaciones", price="70000")
    service = catalog.create_service_for_provider_name(db, form, "  plomero pérez ")
    assert service.provider_id == provider.id
    with pytest.raises(DomainError):
        catalog.create_service_for_provider_name(db, form, "Nadie")


def test_providers_cannot_touch_other_offers(db, provider, make_user, make_service):
    service = make_service(provider=provider)
    intruder = make_user("PROVEEDOR")
    form = ServiceForm(name="Otro", description="Otro", price="1")

    with pytest.raises(PermissionDeniedError):
        catalog.update_service(db, service.id, form, acting_user=intruder)
    with pytest.raises(PermissionDeniedError):
        catalog.delete_service(db, service.id, acting_user=intruder)


def test_delete_blocked_by_requests(db, customer, provider, make_service):
    service = make_service(provider=provider)
    requests_service.create_request(db, customer, service.id, None, None)

    with pytest.raises(ConflictError) as info:
        catalog.delete_service(db, service.id)
    assert str(info.value) == catalog.DELETE_BLOCKED
    assert db.query(Service).count() == 1


def test_listing_depends_on_role(db, admin, provider, customer, make_user, make_service):
    own = make_service(provider=provider, name="Plomería")
    hidden = make_service(provider=provider, name="Plomería nocturna", status=ServiceStatus.OCUPADO)
    foreign = make_service(provider=make_user("PROVEEDOR"), name="Cerrajería")

    assert {s.id for s in catalog.list_for_role(db, customer).items} == {own.id, foreign.id}
    assert {s.id for s in catalog.list_for_role(db, provider).items} == {own.id, hidden.id}
    assert catalog.list_for_role(db, admin).total == 3

    assert [s.id for s in catalog.list_for_role(db, customer, "PLOM").items] == [own.id]
    assert [s.id for s in catalog.list_for_role(db, admin, "plom").items] == [own.id, hidden.id]


def test_assign_and_release_client(db, customer, provider, make_service):
    service = make_service(provider=provider)
    catalog.assign_client(db, service.id, customer)
    assert catalog.history_for_client(db, customer.id) == [service]

    with pytest.raises(DomainError):
        catalog.assign_client(db, service.id, provider)

    catalog.release_client(db, service.id)
    assert catalog.history_for_client(db, customer.id) == []


def test_accept_marks_offer(db, provider, make_service):
    pending = make_service(provider=provider, status=ServiceStatus.PENDIENTE)
    assert catalog.pending_for_provider(db, provider.id) == [pending]

    catalog.accept(db, pending.id, provider)
    assert pending.status == ServiceStatus.ACEPTADA
    assert catalog.pending_for_provider(db, provider.id) == []


# ---------- external catalogue ----------

def test_catalog_client_builds_service():
    client = _client({"nombre": "Plomería", "descripcion": "Arreglos", "precio": 45000})
    service = client.fetch("plomeria")

    assert client.session.calls == [("http://catalogo.local/servicios/plomeria", 2)]
    assert service.name == "Plomería"
    assert service.price == Decimal("45000")
    assert service.status == ServiceStatus.DISPONIBLE


@pytest.mark.parametrize(
    "payload, status_code",
    [
        ({"nombre": "X"}, 200),
        ({"nombre": "X", "descripcion": "Y", "precio": "caro"}, 200),
        ({"nombre": "X", "descripcion": "Y", "precio": -45000}, 200),
        ({"nombre": "X", "descripcion": "Y", "precio": "NaN"}, 200),
        ({"nombre": "X", "descripcion": "Y", "precio": "Infinity"}, 200),
        ([], 200),
        ({"error": "nope"}, 500),
        (ValueError("not json"), 200),
    ],
)
def test_catalog_client_failures(payload, status_code):
    with pytest.raises(CatalogUnavailableError):
        _client(payload, status_code).fetch("x")


def test_catalog_client_network_error():
    client = ServiceCatalogClient("http://catalogo.local", 1, FakeSession(requests.ConnectionError("down")))
    with pytest.raises(CatalogUnavailableError):
        client.fetch("x")


def test_import_endpoint(client, db, login, provider):
    login(provider)
    app.dependency_overrides[get_catalog_client] = lambda: _client(
        {"nombre": "Cerrajería", "descripcion": "Apertura de puertas", "precio": "80000.50"}
    )

    res = client.post("/servicio/auto/cerrajeria")

    assert res.status_code == 200
    body = res.json()
    assert body["name"] == "Cerrajería"
    assert body["status"] == "DISPONIBLE"
    assert db.query(Service).count() == 1


def test_import_endpoint_upstream_failure(client, login, provider):
    login(provider)
    app.dependency_overrides[get_catalog_client] = lambda: _client({}, 503)



class StaticCatalogClient:
    def __init__(self, service):
        self.service = service

    def fetch(self, tipo):
        return self.service


@pytest.mark.parametrize("name, price", [("  ", "1000"), ("Plomería", "-1")])
def test_import_validates_like_manual_publishing(db, name, price):
    service = Service(name=name, description="Arreglos", price=Decimal(price), status=ServiceStatus.DISPONIBLE)

    with pytest.raises(CatalogUnavailableError):
        catalog.import_from_api(db, "plomeria", StaticCatalogClient(service))

    assert db.query(Service).count() == 0


def test_import_endpoint_rejects_negative_price(client, db, login, provider):
    login(provider)
    app.dependency_overrides[get_catalog_client] = lambda: _client(
        {"nombre": "Cerrajería", "descripcion": "Apertura de puertas", "precio": "-80000"}
    )

    assert client.post("/servicio/auto/cerrajeria").status_code == 502
    assert db.query(Service).count() == 0


def test_negative_price_rejected_by_database(client, db):
    db.add(Service(name="X", description="Y", price=Decimal("-1"), status=ServiceStatus.DISPONIBLE))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
    assert client.post("/servicio/auto/cerrajeria").status_code == 502


# ---------- REST ----------

def test_rest_crud(client, provider, customer):
    res = client.post(
        "/api/servicios",
        json={
            "name": "Pintura",
            "description": "Paredes interiores",
            "price": "120000",
            "provider_id": provider.id,
            "client_id": customer.id,
        },
    )
    assert res.status_code == 201
    created = res.json()
    assert created["provider"]["id"] == provider.id
    assert created["client"]["email"] == customer.email
    assert created["status"] == "DISPONIBLE"

    assert client.get(f"/api/servicios/{created['id']}").json()["name"] == "Pintura"
    assert len(client.get("/api/servicios").json()) == 1

    res = client.delete(f"/api/servicios/{created['id']}")
    assert res.json() == {"message": "Servicio eliminado"}
    assert client.get(f"/api/servicios/{created['id']}").status_code == 404
    assert client.delete(f"/api/servicios/{created['id']}").status_code == 404


def test_rest_validation(client, customer):
    assert client.post("/api/servicios", json={"name": "X", "description": "Y", "price": "-1"}).status_code == 400
    assert client.post("/api/servicios", json={"name": "X", "description": "Y", "price": "1", "provider_id": customer.id}).status_code == 400
    assert client.post("/api/servicios", json={"description": "Y", "price": "1"}).status_code == 422


def test_rest_delete_conflict(client, db, customer, provider, make_service):
    service = make_service(provider=provider)
    requests_service.create_request(db, customer, service.id, None, None)

    res = client.delete(f"/api/servicios/{service.id}")
    assert res.status_code == 409


# ---------- pages ----------

def test_service_pages_for_provider(client, db, login, provider):
    login(provider)
    assert client.get("/servicio/crearServicio").status_code == 200

    bad = client.post("/servicio/guardar", data={"name": "", "description": "x", "price": "10"})
    assert bad.status_code == 400
    assert "El nombre no puede estar vacío." in bad.text

    res = client.post(
        "/servicio/guardar",
        data={"name": "Mudanzas", "description": "Trasteos", "price": "90000", "status": "DISPONIBLE"},
        follow_redirects=False,
    )
    assert res.status_code == 303
    service = db.query(Service).one()
    assert service.provider_id == provider.id

    listing = client.get("/servicio")
    assert "Mudanzas" in listing.text

    res = client.post(
        f"/servicio/editar/{service.id}",
        data={"name": "Mudanzas express", "description": "Trasteos", "price": "95000", "status": "OCUPADO"},
        follow_redirects=False,
    )
    assert res.status_code == 303
    db.expire_all()
    assert service.name == "Mudanzas express"
    assert service.status == ServiceStatus.OCUPADO


def test_delete_page_conflict_rerenders_list(client, db, login, customer, provider, make_service):
    service = make_service(provider=provider)
    requests_service.create_request(db, customer, service.id, None, None)
    login(provider)

    res = client.post(f"/servicio/eliminar/{service.id}")
    assert res.status_code == 409
    assert "No se puede eliminar el servicio" in res.text


def test_clients_cannot_publish(client, login, customer):
    login(customer)
    assert client.get("/servicio").status_code == 200
    assert client.get("/servicio/crearServicio").status_code == 403
