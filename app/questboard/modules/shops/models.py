from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.questboard.constants import STOCK_STAPLE
from app.questboard.models import Base
from app.questboard.modules.currencies.models import Currency


class Merchant(Base):
    __tablename__ = "merchants"
    __table_args__ = (
        Index("idx_merchants_campaign_id", "campaign_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)  # e.g. "Market Square, stall 4"
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    stock_items: Mapped[list["StockItem"]] = relationship(
        "StockItem",
        back_populates="merchant",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class StockItem(Base):
    __tablename__ = "stock_items"
    __table_args__ = (
        Index("idx_stock_items_merchant_id", "merchant_id"),
        Index("idx_stock_items_currency_id", "currency_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False)

    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=STOCK_STAPLE)  # STAPLE | ROTATING

    price: Mapped[float] = mapped_column(Float, nullable=False)  # VARIABLE_PRICE (-1) = negotiable
    currency_id: Mapped[int] = mapped_column(ForeignKey("currencies.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)  # None = unlimited, 0 = out of stock
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    merchant: Mapped[Merchant] = relationship("Merchant", back_populates="stock_items")
    currency: Mapped[Currency] = relationship("Currency", lazy="selectin")
