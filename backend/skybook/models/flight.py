from sqlalchemy import String, Integer, ForeignKey, DateTime, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from decimal import Decimal

from skybook.models.base import Base
from skybook.models.airline import Airline

FLIGHT_STATUSES = ("scheduled", "boarding", "departed", "arrived", "cancelled", "delayed")
_STATUS_LIST = ", ".join(f"'{s}'" for s in FLIGHT_STATUSES)

class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        CheckConstraint("seats_available >= 0 AND seats_available <= seats_total", name="ck_flights_seats"),
        CheckConstraint(f"status IN ({_STATUS_LIST})", name="ck_flights_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    airline_id: Mapped[int] = mapped_column(ForeignKey("airlines.id"), index=True)
    flight_number: Mapped[str] = mapped_column(String(32), index=True)
    # IATA airport codes
    origin: Mapped[str] = mapped_column(String(8), index=True)
    destination: Mapped[str] = mapped_column(String(8), index=True)
    departure: Mapped[datetime] = mapped_column(DateTime)
    arrival: Mapped[datetime] = mapped_column(DateTime)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    seats_total: Mapped[int] = mapped_column(Integer)
    seats_available: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(16), default="scheduled")
    stops: Mapped[int] = mapped_column(Integer, default=0)

    airline: Mapped[Airline] = relationship(lazy="joined")

    @property
    def duration_minutes(self) -> int:
        return int((self.arrival - self.departure).total_seconds() // 60)
