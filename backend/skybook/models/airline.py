from sqlalchemy import String, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from skybook.models.base import Base

class Airline(Base):
    __tablename__ = "airlines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    code: Mapped[str] = mapped_column(String(3), unique=True, index=True)  # IATA, e.g. "AA"
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
