from typing import Any

from sqlalchemy import JSON, TEXT, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import TimestampedModel


class Product(TimestampedModel):
    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    vendor_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(TEXT, nullable=True)
    category: Mapped[str] = mapped_column(String(100), index=True, nullable=False)

    base_price: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    # available | limited | out_of_stock
    availability: Mapped[str] = mapped_column(
        String(20), default="available", index=True, nullable=False
    )

    attributes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    images: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
