import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONVariant

_LIVE = text("status IN ('pending', 'accepted')")


class Match(Base):
    """A committed pairing of one shopper request with one trip."""

    __tablename__ = "matches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("shopper_requests.id", ondelete="CASCADE"), nullable=False
    )
    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False
    )
    shopper_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    traveler_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    match_score: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity_fit: Mapped[dict] = mapped_column(JSONVariant, nullable=False, default=dict)
    rationale: Mapped[list] = mapped_column(JSONVariant, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), default="pending")

    # The reservation this match holds on the trip's ledger
    reserved_bucket: Mapped[str] = mapped_column(String(20), nullable=False)
    reserved_kg: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        # At most one live match per (request, trip) pair
        Index(
            "uq_matches_live_pair",
            "request_id",
            "trip_id",
            unique=True,
            postgresql_where=_LIVE,
            sqlite_where=_LIVE,
        ),
        # Time-indexed view for the expiry sweep
        Index("ix_matches_status_expires", "status", "expires_at"),
        Index("ix_matches_trip_status", "trip_id", "status"),
        CheckConstraint("match_score >= 0 AND match_score <= 100", name="ck_matches_score_range"),
    )
