from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, Text, JSON, CheckConstraint, func
from skybook.models.base import Base


class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (CheckConstraint("discount >= 0 AND discount <= 100", name="ck_offers_discount"),)

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    discount = Column(Numeric(5, 2), nullable=False)  # percent, 0-100
    valid_from = Column(DateTime, nullable=False)
    valid_to = Column(DateTime, nullable=False)
    # Optional scoping; an empty/NULL list means "no constraint"
    applicable_flights = Column(JSON, nullable=True)  # [flight_id, ...]
    applicable_airlines = Column(JSON, nullable=True)  # [airline_id, ...]
    applicable_routes = Column(JSON, nullable=True)  # [{"origin": "JFK", "destination": "LAX"}, ...]
    min_price = Column(Numeric(10, 2), nullable=True)
    max_discount = Column(Numeric(10, 2), nullable=True)  # absolute cap in currency
    position = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
