# serviexpress/repositories/ratings.py
from typing import List, Optional

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from serviexpress.db.models.rating import Rating
from serviexpress.db.models.user import User


def list_all(db: Session) -> List[Rating]:
    return db.query(Rating).order_by(Rating.created_at.desc(), Rating.id.desc()).all()


def list_by_score(db: Session, score: int) -> List[Rating]:
    return (
        db.query(Rating)
        .filter(Rating.score == score)
        .order_by(Rating.created_at.desc(), Rating.id.desc())
        .all()
    )


def list_by_client(db: Session, client_id: int) -> List[Rating]:
    return db.query(Rating).filter(Rating.client_id == client_id).order_by(Rating.id).all()


def find_for(db: Session, client_id: int, provider_id: int, service_id: Optional[int]) -> Optional[Rating]:
    q = db.query(Rating).filter(Rating.client_id == client_id, Rating.provider_id == provider_id)
    if service_id is None:
        q = q.filter(Rating.service_id.is_(None))
    else:
        q = q.filter(Rating.service_id == service_id)
    return q.first()


def top_providers(db: Session, min_reviews: int, limit: int):
    """
    Rows of (provider_id, provider_name, average, total) for providers with at
    least `min_reviews` ratings, best average first.
    """
    total = func.count(Rating.id).label("total")
    average = func.avg(Rating.score).label("average")
    return (
        db.query(
            User.id.label("provider_id"),
            User.username.label("provider_name"),
            average,
            total,
        )
        .select_from(Rating)
        .join(User, Rating.provider_id == User.id)
        .group_by(User.id, User.username)
        .having(func.count(Rating.id) >= min_reviews)
        .order_by(desc("average"), desc("total"), User.id)
        .limit(limit)
        .all()
    )
