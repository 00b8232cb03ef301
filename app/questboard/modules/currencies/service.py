from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.questboard.audit import record_event
from app.questboard.constants import DEFAULT_CURRENCIES
from app.questboard.errors import ConflictError, ValidationError
from app.questboard.modules.currencies.models import Currency
from app.questboard.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.questboard.models import User


MAX_ABBREVIATION_LENGTH = 16


def validate_currency_payload(payload: dict) -> list[str]:
    """Validate currency creation/update payload. Returns list of errors."""
    errors = []
    if not clean_str(payload, "name"):
        errors.append("Currency name is required.")
    abbreviation = clean_str(payload, "abbreviation") or ""
    if not abbreviation:
        errors.append("Currency abbreviation is required.")
    elif len(abbreviation) > MAX_ABBREVIATION_LENGTH:
        errors.append(f"Abbreviation must be at most {MAX_ABBREVIATION_LENGTH} characters.")
    return errors


def list_currencies(s: "Session", campaign_id: int) -> list[Currency]:
    return s.query(Currency).filter(Currency.campaign_id == campaign_id).order_by(Currency.name.asc()).all()


def _abbreviation_taken(s: "Session", campaign_id: int, abbreviation: str, exclude_id: int | None = None) -> bool:
    q = s.query(Currency).filter(Currency.campaign_id == campaign_id).filter(Currency.abbreviation == abbreviation)
    if exclude_id is not None:
        q = q.filter(Currency.id != exclude_id)
    return q.first() is not None


def create_currency(s: "Session", campaign_id: int, payload: dict, user: "User") -> Currency:
    errors = validate_currency_payload(payload)
    if errors:
        raise ValidationError(errors)
    abbreviation = clean_str(payload, "abbreviation")
    if _abbreviation_taken(s, campaign_id, abbreviation):
        raise ConflictError("Currency abbreviation already exists in this campaign.")

    now = datetime.utcnow()
    currency = Currency(
        campaign_id=campaign_id,
        name=clean_str(payload, "name"),
        abbreviation=abbreviation,
        description=clean_str(payload, "description"),
        created_at=now,
        updated_at=now,
    )
    s.add(currency)
    s.flush()

    record_event(
        s,
        actor=user,
        action="currency.create",
        entity_type="Currency",
        entity_id=str(currency.id),
        metadata={"campaign_id": campaign_id, "abbreviation": abbreviation},
    )
    return currency


def _relabel_keep_references(s: "Session", campaign_id: int, old: str, new: str) -> int:
    """Point current facilities/hirelings at the renamed abbreviation. Check-in history is left alone."""
    from app.questboard.modules.player_keep.models import Facility, Hireling, PlayerKeep

    keep = s.query(PlayerKeep).filter(PlayerKeep.campaign_id == campaign_id).one_or_none()
    if keep is None:
        return 0
    touched = 0
    for row in list(keep.facilities) + list(keep.hirelings):
        pairs = ("upkeep_currency", "profit_currency") if isinstance(row, Facility) else ("salary_currency", "profit_currency")
        for attr in pairs:
            if getattr(row, attr) == old:
                setattr(row, attr, new)
                touched += 1
    return touched


def update_currency(s: "Session", currency: Currency, payload: dict, user: "User") -> Currency:
    errors = validate_currency_payload(payload)
    if errors:
        raise ValidationError(errors)

    changes = {}
    new_abbreviation = clean_str(payload, "abbreviation")
    if new_abbreviation != currency.abbreviation:
        if _abbreviation_taken(s, currency.campaign_id, new_abbreviation, exclude_id=currency.id):
            raise ConflictError("Currency abbreviation already exists in this campaign.")
        changes["abbreviation"] = {"old": currency.abbreviation, "new": new_abbreviation}
        changes["relabeled_references"] = _relabel_keep_references(s, currency.campaign_id, currency.abbreviation, new_abbreviation)
        currency.abbreviation = new_abbreviation

    new_name = clean_str(payload, "name")
    if new_name != currency.name:
        changes["name"] = {"old": currency.name, "new": new_name}
        currency.name = new_name

    new_description = clean_str(payload, "description")
    if new_description != currency.description:
        changes["description"] = {"old": currency.description, "new": new_description}
        currency.description = new_description

    currency.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="currency.edit",
        entity_type="Currency",
        entity_id=str(currency.id),
        metadata={"campaign_id": currency.campaign_id, "changes": changes},
    )
    return currency


def currency_in_use(s: "Session", currency: Currency) -> bool:
    """Keep rates refer to the abbreviation; merchant stock refers to the row itself."""
    from app.questboard.modules.player_keep.models import Facility, Hireling, PlayerKeep
    from app.questboard.modules.shops.models import StockItem

    if s.query(StockItem.id).filter(StockItem.currency_id == currency.id).first():
        return True

    abbr = currency.abbreviation
    facility_hit = (
        s.query(Facility.id)
        .join(PlayerKeep, PlayerKeep.id == Facility.player_keep_id)
        .filter(PlayerKeep.campaign_id == currency.campaign_id)
        .filter(or_(Facility.upkeep_currency == abbr, Facility.profit_currency == abbr))
        .first()
    )
    if facility_hit:
        return True
    hireling_hit = (
        s.query(Hireling.id)
        .join(PlayerKeep, PlayerKeep.id == Hireling.player_keep_id)
        .filter(PlayerKeep.campaign_id == currency.campaign_id)
        .filter(or_(Hireling.salary_currency == abbr, Hireling.profit_currency == abbr))
        .first()
    )
    return hireling_hit is not None


def delete_currency(s: "Session", currency: Currency, user: "User") -> None:
    if currency_in_use(s, currency):
        raise ConflictError("Cannot delete currency that is in use by keep rates or merchant stock.")

    record_event(
        s,
        actor=user,
        action="currency.delete",
        entity_type="Currency",
        entity_id=str(currency.id),
        metadata={"campaign_id": currency.campaign_id, "abbreviation": currency.abbreviation},
    )
    s.delete(currency)


def initialize_default_currencies(s: "Session", campaign_id: int, user: "User") -> list[Currency]:
    """Seed gp/sp/cp/pp/ep. No-op (returns existing rows) once the campaign has any currency."""
    existing = list_currencies(s, campaign_id)
    if existing:
        return existing

    now = datetime.utcnow()
    created = []
    for name, abbreviation, description in DEFAULT_CURRENCIES:
        currency = Currency(
            campaign_id=campaign_id,
            name=name,
            abbreviation=abbreviation,
            description=description,
            created_at=now,
            updated_at=now,
        )
        s.add(currency)
        created.append(currency)
    s.flush()

    record_event(
        s,
        actor=user,
        action="currency.initialize_defaults",
        entity_type="Campaign",
        entity_id=str(campaign_id),
        metadata={"abbreviations": [c.abbreviation for c in created]},
    )
    return sorted(created, key=lambda c: c.name)
