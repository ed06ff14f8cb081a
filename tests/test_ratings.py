import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from serviexpress.core.errors import DomainError, PermissionDeniedError
from serviexpress.db.models.rating import Rating
from serviexpress.db.models.service_request import RequestStatus
from serviexpress.schemas.rating import RatingForm
from serviexpress.services import ratings as ratings_service
from serviexpress.services import requests as requests_service


def test_form_requires_a_target():
    with pytest.raises(ValidationError):
        RatingForm(score=4)


@pytest.mark.parametrize("score", [0, 6, ""])
def test_form_score_range(score):
    with pytest.raises(ValidationError):
        RatingForm(provider_id=1, score=score)


def test_form_blank_ids_become_none():
    form = RatingForm(service_id="", provider_id="3", score="5", comment="Excelente")
    assert form.service_id is None
    assert form.provider_id == 3
    assert form.score == 5


def test_rating_a_service_resolves_its_provider(db, customer, provider, make_service):
    service = make_service(provider=provider)

    rating = ratings_service.create_or_update(db, customer.id, RatingForm(service_id=service.id, score=4, comment="  Bien "))

    assert rating.provider_id == provider.id
    assert rating.service_id == service.id
    assert rating.comment == "Bien"


def test_second_rating_overwrites_first(db, customer, provider, make_service):
    service = make_service(provider=provider)
    first = ratings_service.create_or_update(db, customer.id, RatingForm(service_id=service.id, score=2))
    second = ratings_service.create_or_update(db, customer.id, RatingForm(service_id=service.id, score=5, comment="Mejoró"))

    assert first.id == second.id
    assert db.query(Rating).count() == 1
    assert second.score == 5
    assert second.created_at >= first.created_at


def test_provider_only_rating_is_separate_from_service_rating(db, customer, provider, make_service):
    service = make_service(provider=provider)
    ratings_service.create_or_update(db, customer.id, RatingForm(service_id=service.id, score=3))
    provider_only = ratings_service.create_or_update(db, customer.id, RatingForm(provider_id=provider.id, score=5))

    assert provider_only.service_id is None
    assert db.query(Rating).count() == 2


def test_duplicate_provider_only_rating_rejected_by_database(db, customer, provider):
    db.add(Rating(client_id=customer.id, provider_id=provider.id, score=4))
    db.commit()
    db.add(Rating(client_id=customer.id, provider_id=provider.id, score=2))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
    assert db.query(Rating).count() == 1


def test_rating_unknown_targets(db, customer, make_user, make_service):
    with pytest.raises(DomainError):
        ratings_service.create_or_update(db, customer.id, RatingForm(service_id=999, score=3))
    with pytest.raises(DomainError):
        ratings_service.create_or_update(db, customer.id, RatingForm(provider_id=make_user().id, score=3))
    orphan = make_service(provider=None)
    with pytest.raises(DomainError):
        ratings_service.create_or_update(db, customer.id, RatingForm(service_id=orphan.id, score=3))


def test_list_ratings_filters_by_score(db, make_user, provider):
    for score in (5, 3, 5):
        ratings_service.create_or_update(db, make_user().id, RatingForm(provider_id=provider.id, score=score))

    assert len(ratings_service.list_ratings(db)) == 3
    assert [r.score for r in ratings_service.list_ratings(db, 5)] == [5, 5]
    assert ratings_service.list_ratings(db, 1) == []


def test_top_providers_ranking(db, make_user):
    best = make_user("PROVEEDOR", username="Mejor")
    busy = make_user("PROVEEDOR", username="Ocupado")
    single = make_user("PROVEEDOR", username="Unico")
    nobody = make_user("PROVEEDOR", username="Sin reseñas")

    def rate(provider, score):
        ratings_service.create_or_update(db, make_user().id, RatingForm(provider_id=provider.id, score=score))

    rate(best, 5)
    rate(best, 5)
    rate(busy, 4)
    rate(busy, 5)
    rate(busy, 3)
    rate(single, 5)

    top = ratings_service.top_providers(db, n=3, min_reviews=1)
    assert [p.provider_name for p in top] == ["Mejor", "Unico", "Ocupado"]
    assert top[0].average == 5.0
    assert top[0].total == 2
    assert top[2].average == 4.0

    seasoned = ratings_service.top_providers(db, n=3, min_reviews=2)
    assert [p.provider_name for p in seasoned] == ["Mejor", "Ocupado"]
    assert nobody.username not in [p.provider_name for p in top]


def test_form_from_finished_request(db, customer, provider, make_service, make_user):
    service = make_service(provider=provider)
    solicitud = requests_service.create_request(db, customer, service.id, None, None)

    with pytest.raises(DomainError):
        ratings_service.form_from_request(db, customer.id, solicitud.id)
    with pytest.raises(PermissionDeniedError):
        ratings_service.form_from_request(db, make_user().id, solicitud.id)

    solicitud.status = RequestStatus.FINALIZADO.value
    db.commit()
    form, service_name, provider_name = ratings_service.form_from_request(db, customer.id, solicitud.id)
    assert form.service_id == service.id
    assert form.provider_id == provider.id
    assert service_name == service.name
    assert provider_name == provider.username


# ---------- pages ----------

def test_rating_pages(client, db, login, customer, provider, make_service):
    service = make_service(provider=provider)
    login(customer)

    assert client.get("/calificaciones/nueva").status_code == 200

    bad = client.post("/calificaciones", data={"service_id": service.id, "score": "9"})
    assert bad.status_code == 400
    assert "La puntuación máxima es 5." in bad.text

    res = client.post(
        "/calificaciones",
        data={"service_id": service.id, "score": "4", "comment": "Puntual"},
        follow_redirects=False,
    )
    assert res.status_code == 303
    assert res.headers["location"].startswith("/calificaciones?success=")

    listing = client.get("/calificaciones", params={"rating": 4})
    assert listing.status_code == 200
    assert "Puntual" in listing.text
    assert "Puntual" not in client.get("/calificaciones", params={"rating": 1}).text


def test_only_clients_rate(client, login, provider):
    login(provider)
    assert client.get("/calificaciones").status_code == 200
    assert client.post("/calificaciones", data={"provider_id": provider.id, "score": "5"}).status_code == 403


def test_home_shows_best_providers(client, db, customer, provider):
    ratings_service.create_or_update(db, customer.id, RatingForm(provider_id=provider.id, score=5))

    res = client.get("/")
    assert res.status_code == 200
    assert "Mejores proveedores" in res.text
    assert provider.username in res.text
