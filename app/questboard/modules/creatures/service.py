from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from sqlalchemy import or_

from app.questboard.audit import apply_changes, record_event
from app.questboard.constants import DEFAULT_CREATURE_CATEGORY
from app.questboard.errors import ValidationError
from app.questboard.modules.creatures.models import Creature
from app.questboard.utils import clean_str, parse_bool

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.questboard.models import User


INT_STATS = (
    "armor_class",
    "hit_points",
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
    "proficiency_bonus",
)
TEXT_FIELDS = (
    "description",
    "speed",
    "challenge_rating",
    "skills",
    "saving_throws",
    "damage_resistances",
    "damage_immunities",
    "condition_immunities",
    "senses",
    "languages",
    "traits",
    "actions",
    "legendary_actions",
    "lair_actions",
    "spellcasting",
)


def creature_to_dict(c: Creature) -> dict[str, Any]:
    data = {
        "id": c.id,
        "campaign_id": c.campaign_id,
        "name": c.name,
        "category": c.category,
        "tags": list(c.tags or []),
        "avatar_url": c.avatar_url,
        "is_private": c.is_private,
        "created_by_user_id": c.created_by_user_id,
    }
    data.update({key: getattr(c, key) for key in INT_STATS + TEXT_FIELDS})
    return data


def _label(key: str) -> str:
    return key.replace("_", " ").capitalize()


def _parse_tags(raw: Any, errors: list[str]) -> list[str]:
    if raw in (None, ""):
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, list):
        errors.append("Tags must be a list of strings.")
        return []
    tags: list[str] = []
    for tag in raw:
        text = str(tag).strip() if isinstance(tag, (str, int, float)) and not isinstance(tag, bool) else None
        if text is None:
            errors.append("Tags must be a list of strings.")
            return []
        if text and text not in tags:
            tags.append(text)
    return tags


def _parse_stat(payload: dict, key: str, errors: list[str]) -> int | None:
    raw = payload.get(key)
    if raw in (None, ""):
        return None
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        errors.append(f"{_label(key)} must be a whole number.")
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        errors.append(f"{_label(key)} must be a whole number.")
        return None


def parse_creature_payload(payload: dict) -> dict[str, Any]:
    errors: list[str] = []
    name = clean_str(payload, "name")
    if not name:
        errors.append("Name is required.")

    avatar_url = clean_str(payload, "avatar_url")
    if avatar_url and not avatar_url.startswith(("http://", "https://", "/")):
        errors.append("Avatar URL must be an http(s) URL or an absolute path.")

    is_private = parse_bool(payload.get("is_private"), False)
    if is_private is None:
        errors.append("Private must be true or false.")

    values: dict[str, Any] = {
        "name": name,
        "category": clean_str(payload, "category") or DEFAULT_CREATURE_CATEGORY,
        "tags": _parse_tags(payload.get("tags"), errors),
        "avatar_url": avatar_url,
        "is_private": is_private,
    }
    for key in INT_STATS:
        values[key] = _parse_stat(payload, key, errors)
    for key in TEXT_FIELDS:
        values[key] = clean_str(payload, key)

    if errors:
        raise ValidationError(errors)
    return values


def list_creatures(
    s: "Session",
    campaign_id: int,
    *,
    include_private: bool,
    search: str | None = None,
    category: str | None = None,
    tags: Iterable[str] = (),
) -> list[Creature]:
    """Alphabetical; `tags` matches creatures carrying any of them (case-insensitive)."""
    q = s.query(Creature).filter(Creature.campaign_id == campaign_id)
    if not include_private:
        q = q.filter(Creature.is_private.is_(False))
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Creature.name.ilike(pattern), Creature.description.ilike(pattern)))
    if category:
        q = q.filter(Creature.category == category)
    creatures = q.order_by(Creature.name.asc()).all()

    wanted = {t.strip().lower() for t in tags if t.strip()}
    if wanted:
        creatures = [c for c in creatures if wanted & {t.lower() for t in c.tags or []}]
    return creatures


def create_creature(s: "Session", campaign_id: int, payload: dict, user: "User") -> Creature:
    values = parse_creature_payload(payload)
    now = datetime.utcnow()
    creature = Creature(
        campaign_id=campaign_id,
        created_by_user_id=user.id,
        created_at=now,
        updated_at=now,
        **values,
    )
    s.add(creature)
    s.flush()

    record_event(
        s,
        actor=user,
        action="creature.create",
        entity_type="Creature",
        entity_id=str(creature.id),
        metadata={"campaign_id": campaign_id, "name": creature.name, "is_private": creature.is_private},
    )
    return creature


def update_creature(s: "Session", creature: Creature, payload: dict, user: "User") -> Creature:
    changes = apply_changes(creature, parse_creature_payload(payload))
    if not changes:
        return creature
    creature.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="creature.edit",
        entity_type="Creature",
        entity_id=str(creature.id),
        metadata={"campaign_id": creature.campaign_id, "changes": changes},
    )
    return creature


def delete_creature(s: "Session", creature: Creature, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="creature.delete",
        entity_type="Creature",
        entity_id=str(creature.id),
        metadata={"campaign_id": creature.campaign_id, "name": creature.name},
    )
    s.delete(creature)
