from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.questboard.models import Base


class PlayerKeep(Base):
    __tablename__ = "player_keeps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    campaign_id: Mapped[int] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    icon_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    facilities: Mapped[list["Facility"]] = relationship(
        "Facility",
        back_populates="player_keep",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Facility.created_at.desc()",
    )
    hirelings: Mapped[list["Hireling"]] = relationship(
        "Hireling",
        back_populates="player_keep",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Hireling.created_at.desc()",
    )
    # History is paginated through service.list_check_ins; never loaded eagerly.
    check_ins: Mapped[list["KeepCheckIn"]] = relationship(
        "KeepCheckIn",
        back_populates="player_keep",
        cascade="all, delete-orphan",
        lazy="noload",
    )


class Facility(Base):
    __tablename__ = "facilities"
    __table_args__ = (
        Index("idx_facilities_player_keep_id", "player_keep_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_keep_id: Mapped[int] = mapped_column(ForeignKey("player_keeps.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Weekly rates; upkeep and profit may be denominated differently
    upkeep_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    upkeep_currency: Mapped[str | None] = mapped_column(String(16), nullable=True)
    profit_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    profit_currency: Mapped[str | None] = mapped_column(String(16), nullable=True)

    # [{name, weeks_remaining, original_weeks}]
    crafting_items: Mapped[list | None] = mapped_column(JSON, nullable=True)
    # [{name, quantity, crafting_duration, progress_weeks}]
    recurring_items: Mapped[list | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    player_keep: Mapped[PlayerKeep] = relationship("PlayerKeep", back_populates="facilities")


class Hireling(Base):
    __tablename__ = "hirelings"
    __table_args__ = (
        Index("idx_hirelings_player_keep_id", "player_keep_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_keep_id: Mapped[int] = mapped_column(ForeignKey("player_keeps.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    salary_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    salary_currency: Mapped[str | None] = mapped_column(String(16), nullable=True)
    profit_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    profit_currency: Mapped[str | None] = mapped_column(String(16), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    player_keep: Mapped[PlayerKeep] = relationship("PlayerKeep", back_populates="hirelings")


class KeepCheckIn(Base):
    """
    Immutable snapshot of one "party returns" settlement.
    The stored breakdown is authoritative; later facility/hireling edits never touch it.
    """

    __tablename__ = "keep_check_ins"
    __table_args__ = (
        Index("idx_keep_check_ins_keep_created", "player_keep_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_keep_id: Mapped[int] = mapped_column(ForeignKey("player_keeps.id", ondelete="CASCADE"), nullable=False)

    weeks_away: Mapped[int] = mapped_column(Integer, nullable=False)
    breakdown: Mapped[dict] = mapped_column(JSON, nullable=False)
    net_profit: Mapped[dict] = mapped_column(JSON, nullable=False)
    production: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    player_keep: Mapped[PlayerKeep] = relationship("PlayerKeep", back_populates="check_ins")
