from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator, model_validator

from skybook.core.clock import as_utc


class RouteIn(BaseModel):
    origin: str = Field(..., min_length=3, max_length=8)
    destination: str = Field(..., min_length=3, max_length=8)


class OfferIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    discount: Decimal = Field(..., ge=0, le=100, description="Percent off, 0-100")
    valid_from: datetime
    valid_to: datetime
    applicable_flights: list[int] = []
    applicable_airlines: list[int] = []
    applicable_routes: list[RouteIn] = []
    min_price: Decimal | None = Field(None, ge=0)
    max_discount: Decimal | None = Field(None, ge=0, description="Absolute cap on the discount amount")
    position: int = 0
    is_active: bool = True

    @field_validator("valid_from", "valid_to")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def _window(self):
        if self.valid_from > self.valid_to:
            raise ValueError("valid_from must not be after valid_to")
        return self
