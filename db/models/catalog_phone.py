"""
db/models/catalog_phone.py

Catalog phone model. One row per brand + model + variant, holding the latest
synced specifications and retailer prices.
"""

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, DateTime, Float, Index, String, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin

JSONPayload = JSON().with_variant(JSONB, "postgresql")


class CatalogPhone(Base, TimestampMixin):
    """
    Rows are identified by ``natural_key`` so provider spellings that differ
    only in case or spacing land on the same row. variant is stored as an
    empty string when the phone has no variant.
    """

    __tablename__ = "catalog_phones"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(200), nullable=False)
    variant: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    natural_key: Mapped[str] = mapped_column(
        String(400),
        nullable=False,
        comment="Normalized brand-model-variant key",
    )
    external_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Specifications provider id",
    )
    availability: Mapped[str | None] = mapped_column(String(32), nullable=True)
    launch_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    specifications: Mapped[dict[str, Any] | None] = mapped_column(JSONPayload, nullable=True)
    images: Mapped[list[str] | None] = mapped_column(JSONPayload, nullable=True)
    mrp: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(8), nullable=True)
    price_external_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Price-tracking provider id",
    )
    lowest_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    highest_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    offers: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONPayload,
        nullable=True,
        comment="Per-retailer offers from the price-tracking provider",
    )
    specs_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    prices_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("natural_key", name="uq_catalog_phones_natural_key"),
        Index("ix_catalog_phones_brand", "brand"),
    )
