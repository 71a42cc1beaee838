import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Index, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONVariant


class Trip(Base):
    """One traveler itinerary leg and its luggage capacity ledger."""

    __tablename__ = "trips"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    traveler_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    origin_country: Mapped[str] = mapped_column(String(2), nullable=False)
    destination_country: Mapped[str] = mapped_column(String(2), nullable=False)

    # Instants are stored in UTC; the declared zones are kept for display
    departure_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    departure_tz: Mapped[str] = mapped_column(String(64), nullable=False)
    arrival_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    arrival_tz: Mapped[str] = mapped_column(String(64), nullable=False)
    # Local calendar date at the destination, used for delivery-window lookups
    arrival_date: Mapped[date] = mapped_column(Date, nullable=False)

    carry_on_capacity_kg: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    checked_capacity_kg: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    available_carry_on_kg: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    available_checked_kg: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)

    can_carry_fragile: Mapped[bool] = mapped_column(Boolean, default=False)
    can_handle_special_delivery: Mapped[bool] = mapped_column(Boolean, default=False)
    special_delivery_categories: Mapped[list] = mapped_column(JSONVariant, default=list)
    ticket_photo_url: Mapped[str | None] = mapped_column(Text)

    status: Mapped[str] = mapped_column(String(20), default="pending")
    # Optimistic-concurrency counter, bumped by every ledger write
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    airborne_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    arrived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_trips_route_arrival", "origin_country", "destination_country", "arrival_date"),
        Index("ix_trips_traveler_status", "traveler_id", "status"),
        CheckConstraint(
            "available_carry_on_kg >= 0 AND available_carry_on_kg <= carry_on_capacity_kg",
            name="ck_trips_carry_on_available",
        ),
        CheckConstraint(
            "available_checked_kg >= 0 AND available_checked_kg <= checked_capacity_kg",
            name="ck_trips_checked_available",
        ),
        CheckConstraint("departure_at < arrival_at", name="ck_trips_departure_before_arrival"),
    )

    def available_kg(self, bucket: str) -> Decimal:
        return self.available_carry_on_kg if bucket == "carry_on" else self.available_checked_kg

    def capacity_kg(self, bucket: str) -> Decimal:
        return self.carry_on_capacity_kg if bucket == "carry_on" else self.checked_capacity_kg
