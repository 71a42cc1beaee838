import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONVariant


class ShopperRequest(Base):
    __tablename__ = "shopper_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shopper_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    from_country: Mapped[str] = mapped_column(String(2), nullable=False)
    destination_country: Mapped[str] = mapped_column(String(2), nullable=False)
    delivery_window_start: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_window_end: Mapped[date] = mapped_column(Date, nullable=False)
    pickup: Mapped[bool] = mapped_column(Boolean, default=False)
    carry_on: Mapped[bool] = mapped_column(Boolean, default=False)
    total_weight_kg: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="draft")
    # published | marketplace — where the request goes back to when a match is released
    listing_mode: Mapped[str | None] = mapped_column(String(20))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    bag_items: Mapped[list["BagItem"]] = relationship(
        back_populates="request", cascade="all, delete-orphan", order_by="BagItem.position"
    )

    __table_args__ = (
        Index("ix_shopper_requests_shopper_status", "shopper_id", "status"),
        CheckConstraint("delivery_window_start <= delivery_window_end", name="ck_shopper_requests_window"),
    )


class BagItem(Base):
    __tablename__ = "bag_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("shopper_requests.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    link: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    weight_kg: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    is_fragile: Mapped[bool] = mapped_column(Boolean, default=False)
    requires_special_delivery: Mapped[bool] = mapped_column(Boolean, default=False)
    special_delivery_category: Mapped[str | None] = mapped_column(String(50))
    photos: Mapped[list] = mapped_column(JSONVariant, default=list)

    request: Mapped["ShopperRequest"] = relationship(back_populates="bag_items")

    __table_args__ = (
        Index("ix_bag_items_request", "request_id", "position"),
    )
