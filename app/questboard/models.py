from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.questboard.constants import ROLE_ADMIN, ROLE_USER


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_USER)  # ADMIN | USER
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Campaign the user is currently looking at (UI convenience, not an authz input)
    active_campaign_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Every keep/campaign/currency write records one of these next to the change.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_events_entity", "entity_type", "entity_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "keep.check_in"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Facility"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.questboard.modules.campaigns.models import Campaign, CampaignMember  # noqa: E402,F401
from app.questboard.modules.currencies.models import Currency  # noqa: E402,F401
from app.questboard.modules.player_keep.models import (  # noqa: E402,F401
    Facility,
    Hireling,
    KeepCheckIn,
    PlayerKeep,
)
from app.questboard.modules.shops.models import Merchant, StockItem  # noqa: E402,F401
from app.questboard.modules.creatures.models import Creature  # noqa: E402,F401
