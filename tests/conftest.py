from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from serviexpress.core.security import hash_password
from serviexpress.db.base import Base, get_db
from serviexpress.db.init_db import seed_defaults
from serviexpress.db.models.service import Service, ServiceStatus
from serviexpress.db.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_PROVIDER, Role, User
from serviexpress.main import app
from serviexpress.payments.settings import WompiSettings, get_wompi_settings

PASSWORD = "secreto123"

WOMPI_TEST_SETTINGS = WompiSettings(
    public_key="pub_test_abc",
    integrity_secret="test_integrity_secret",
    events_secret="test_events_secret",
    currency="COP",
    redirect_url="http://testserver/pagos/wompi/callback",
    use_widget=True,
)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    seed_defaults(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def settings():
    return WOMPI_TEST_SETTINGS


@pytest.fixture()
def client(engine, db):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_wompi_settings] = lambda: WOMPI_TEST_SETTINGS
    # not used as a context manager: the startup hook would touch the real database
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def _role(db, name):
    return db.query(Role).filter(Role.name == name).first()


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(role=ROLE_CLIENT, username=None, email=None, password=PASSWORD):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=username or f"{role.lower()}{n}",
            email=email or f"{role.lower()}{n}@example.com",
            password_hash=hash_password(password),
            phone="3001234567",
            city="Bogotá",
            role=_role(db, role),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user(ROLE_ADMIN, username="admin")


@pytest.fixture()
def provider(make_user):
    return make_user(ROLE_PROVIDER, username="Plomero Pérez")


@pytest.fixture()
def customer(make_user):
    return make_user(ROLE_CLIENT, username="Ana")


@pytest.fixture()
def make_service(db):
    def _make(provider=None, name="Reparación de tubería", price="50000", status=ServiceStatus.DISPONIBLE, client=None):
        service = Service(
            name=name,
            description=f"{name} a domicilio",
            price=Decimal(price),
            status=status,
            provider=provider,
            client=client,
        )
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    return _make


@pytest.fixture()
def login(client):
    def _login(user, password=PASSWORD):
        res = client.post(
            "/auth/login",
            data={"email": user.email, "password": password},
            follow_redirects=False,
        )
        assert res.status_code == 303
        return res

    return _login


@pytest.fixture()
def password():
    return PASSWORD
