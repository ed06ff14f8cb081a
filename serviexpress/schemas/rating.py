# serviexpress/schemas/rating.py
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class RatingForm(BaseModel):
    service_id: Optional[int] = None
    provider_id: Optional[int] = None
    score: Optional[int] = Field(default=None, description="Rating 1-5")
    comment: Optional[str] = Field(default=None, max_length=500)

    @field_validator("service_id", "provider_id", "score", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return None if v in ("", None) else v

    @field_validator("score")
    @classmethod
    def score_range(cls, v):
        if v is None:
            raise ValueError("Selecciona una puntuación de 1 a 5.")
        if v < 1:
            raise ValueError("La puntuación mínima es 1.")
        if v > 5:
            raise ValueError("La puntuación máxima es 5.")
        return v

    @model_validator(mode="after")
    def has_target(self):
        if self.service_id is None and self.provider_id is None:
            raise ValueError("Debes elegir un servicio o un proveedor.")
        return self


class TopProvider(BaseModel):
    provider_id: int
    provider_name: str
    average: float
    total: int
