from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.questboard.constants import DEFAULT_CREATURE_CATEGORY
from app.questboard.models import Base


class Creature(Base):
    __tablename__ = "creatures"
    __table_args__ = (
        Index("idx_creatures_campaign_name", "campaign_id", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default=DEFAULT_CREATURE_CATEGORY)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Stat block
    armor_class: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hit_points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    speed: Mapped[str | None] = mapped_column(String(128), nullable=True)
    strength: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dexterity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    constitution: Mapped[int | None] = mapped_column(Integer, nullable=True)
    intelligence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    wisdom: Mapped[int | None] = mapped_column(Integer, nullable=True)
    charisma: Mapped[int | None] = mapped_column(Integer, nullable=True)
    challenge_rating: Mapped[str | None] = mapped_column(String(16), nullable=True)  # "1/4", "5"
    proficiency_bonus: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Free-text blocks
    skills: Mapped[str | None] = mapped_column(Text, nullable=True)
    saving_throws: Mapped[str | None] = mapped_column(Text, nullable=True)
    damage_resistances: Mapped[str | None] = mapped_column(Text, nullable=True)
    damage_immunities: Mapped[str | None] = mapped_column(Text, nullable=True)
    condition_immunities: Mapped[str | None] = mapped_column(Text, nullable=True)
    senses: Mapped[str | None] = mapped_column(Text, nullable=True)
    languages: Mapped[str | None] = mapped_column(Text, nullable=True)
    traits: Mapped[str | None] = mapped_column(Text, nullable=True)
    actions: Mapped[str | None] = mapped_column(Text, nullable=True)
    legendary_actions: Mapped[str | None] = mapped_column(Text, nullable=True)
    lair_actions: Mapped[str | None] = mapped_column(Text, nullable=True)
    spellcasting: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
