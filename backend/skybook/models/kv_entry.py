from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from skybook.core.clock import utcnow
from skybook.models.base import Base

class KeyValueEntry(Base):
    """Durable key-value pair; values are JSON documents."""
    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: utcnow().replace(tzinfo=None), onupdate=lambda: utcnow().replace(tzinfo=None)
    )
