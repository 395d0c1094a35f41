from datetime import date
from pydantic import BaseModel, EmailStr, Field


class PassengerIn(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: str | None = Field(None, max_length=32)
    date_of_birth: date
    passport_number: str | None = Field(None, max_length=32)
    nationality: str | None = Field(None, max_length=64)


class CreateBookingBody(BaseModel):
    flight_id: int
    passengers: list[PassengerIn] = Field(..., min_length=1, max_length=9, description="Travellers on this booking (1-9)")
