import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class TravelerProfile(Base):
    """Read-only projection of a traveler's rating history, owned by the profile system."""

    __tablename__ = "traveler_profiles"

    traveler_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    rating: Mapped[Decimal | None] = mapped_column(Numeric(2, 1))
    rating_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
