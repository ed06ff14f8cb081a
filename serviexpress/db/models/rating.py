# serviexpress/db/models/rating.py
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import relationship

from serviexpress.db.base import Base


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_rating_score_range"),
        UniqueConstraint("client_id", "provider_id", "service_id", name="uk_rating_client_provider_service"),
        # NULLs never collide in the constraint above
        Index(
            "uk_rating_client_provider_no_service",
            "client_id",
            "provider_id",
            unique=True,
            sqlite_where=text("service_id IS NULL"),
            postgresql_where=text("service_id IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # null when the rating is for the provider only
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)

    score = Column(Integer, nullable=False)   # 1..5
    comment = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # relationships (helpful for response shaping)
    client = relationship("User", foreign_keys=[client_id])
    provider = relationship("User", foreign_keys=[provider_id])
    service = relationship("Service", foreign_keys=[service_id])
